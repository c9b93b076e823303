"""
Filter graph value for FFmpeg's ``-filter_complex``.

Builders add statements (a chain of filters between labeled pads) to a
FilterGraph; the graph is validated and serialized exactly once by the plan
assembler. Validation enforces the pad discipline FFmpeg expects:

- every consumed pad is an engine input reference (``N:v`` / ``N:a``) or was
  produced by exactly one earlier statement
- every produced pad is consumed exactly once, except the terminal pads that
  the output mapping picks up
"""

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Union

from slidecast.exceptions import FilterGraphError

ENGINE_INPUT_PAD = re.compile(r"^(\d+):([va])$")


def format_number(value: float) -> str:
    """Render a number the way FFmpeg arguments are written.

    Integral values drop the decimal part (``9``), everything else uses the
    shortest round-trip representation (``4.5``, ``-0.2``).
    """
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def is_engine_input(pad: str) -> bool:
    return ENGINE_INPUT_PAD.match(pad) is not None


@dataclass(frozen=True)
class FilterStatement:
    """A filter chain reading ``inputs`` and writing ``outputs``."""

    filters: tuple[str, ...]
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        """Name of the first filter in the chain (``scale``, ``concat``...)."""
        return self.filters[0].split("=", 1)[0]

    def uses(self, filter_name: str) -> bool:
        return any(f.split("=", 1)[0] == filter_name for f in self.filters)

    def serialize(self) -> str:
        return (
            "".join(f"[{p}]" for p in self.inputs)
            + ",".join(self.filters)
            + "".join(f"[{p}]" for p in self.outputs)
        )


class FilterGraph:
    """Ordered collection of filter statements."""

    def __init__(self, statements: Optional[Iterable[FilterStatement]] = None):
        self._statements: list[FilterStatement] = list(statements or [])

    def add(
        self,
        filters: Union[str, Iterable[str]],
        inputs: Iterable[str] = (),
        outputs: Iterable[str] = (),
    ) -> FilterStatement:
        if isinstance(filters, str):
            filters = (filters,)
        statement = FilterStatement(tuple(filters), tuple(inputs), tuple(outputs))
        if not statement.filters:
            raise FilterGraphError("Filter statement without filters")
        self._statements.append(statement)
        return statement

    def extend(self, other: "FilterGraph") -> "FilterGraph":
        self._statements.extend(other.statements)
        return self

    @property
    def statements(self) -> list[FilterStatement]:
        return list(self._statements)

    def __iter__(self) -> Iterator[FilterStatement]:
        return iter(self._statements)

    def __len__(self) -> int:
        return len(self._statements)

    def __bool__(self) -> bool:
        return bool(self._statements)

    def statements_using(self, filter_name: str) -> list[FilterStatement]:
        return [s for s in self._statements if s.uses(filter_name)]

    def produced_pads(self) -> list[str]:
        return [pad for s in self._statements for pad in s.outputs]

    def validate(self, terminals: Iterable[str] = ("outv",), input_count: Optional[int] = None) -> None:
        """
        Check the pad discipline.

        Args:
            terminals: Pads consumed by the output mapping instead of a filter
            input_count: Number of engine inputs; bounds ``N:v``/``N:a`` references

        Raises:
            FilterGraphError: On the first violation found
        """
        producers: dict[str, int] = {}
        consumed: set[str] = set()

        for position, statement in enumerate(self._statements):
            for pad in statement.inputs:
                match = ENGINE_INPUT_PAD.match(pad)
                if match:
                    index = int(match.group(1))
                    if input_count is not None and index >= input_count:
                        raise FilterGraphError(
                            f"Pad [{pad}] references input {index} but only {input_count} inputs exist",
                            pad=pad,
                        )
                    continue
                if pad not in producers:
                    raise FilterGraphError(f"Pad [{pad}] is consumed before it is produced", pad=pad)
                if pad in consumed:
                    raise FilterGraphError(f"Pad [{pad}] is consumed more than once", pad=pad)
                consumed.add(pad)

            for pad in statement.outputs:
                if is_engine_input(pad):
                    raise FilterGraphError(f"Pad [{pad}] shadows an engine input", pad=pad)
                if pad in producers:
                    raise FilterGraphError(
                        f"Pad [{pad}] is produced by statements {producers[pad]} and {position}",
                        pad=pad,
                    )
                producers[pad] = position

        terminals = tuple(terminals)
        for pad in terminals:
            if pad not in producers:
                raise FilterGraphError(f"Terminal pad [{pad}] is never produced", pad=pad)
            if pad in consumed:
                raise FilterGraphError(f"Terminal pad [{pad}] is consumed inside the graph", pad=pad)

        dangling = [pad for pad in producers if pad not in consumed and pad not in terminals]
        if dangling:
            raise FilterGraphError(f"Pad [{dangling[0]}] is produced but never used", pad=dangling[0])

    def serialize(self) -> str:
        return ";".join(s.serialize() for s in self._statements)

    def __str__(self) -> str:
        return self.serialize()
