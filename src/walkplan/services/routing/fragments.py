"""Open route fragments for the savings heuristic, tracked by stop index."""

from __future__ import annotations


class FragmentSet:
    """Disjoint paths over stops ``0..size-1``, starting as singletons.

    Stops are only ever joined at path endpoints, so every fragment stays a simple
    open path and joining two stops of the same fragment (a cycle) is refused.
    """

    def __init__(self, size: int) -> None:
        self._fragments: dict[int, list[int]] = {stop: [stop] for stop in range(size)}
        self._fragment_of = list(range(size))

    def __len__(self) -> int:
        return len(self._fragments)

    def fragment(self, stop: int) -> list[int]:
        return self._fragments[self._fragment_of[stop]]

    def fragments(self) -> list[list[int]]:
        return list(self._fragments.values())

    def same_fragment(self, first: int, second: int) -> bool:
        return self._fragment_of[first] == self._fragment_of[second]

    def is_endpoint(self, stop: int) -> bool:
        path = self.fragment(stop)
        return stop == path[0] or stop == path[-1]

    def can_join(self, first: int, second: int) -> bool:
        return not self.same_fragment(first, second) and self.is_endpoint(first) and self.is_endpoint(second)

    def join_candidates(self, first: int, second: int) -> list[list[int]]:
        """Paths that make ``first`` and ``second`` adjacent, fewest reversals first.

        Fragments are only reversed when needed to bring the joined stops to
        facing ends.
        """
        a, b = self.fragment(first), self.fragment(second)
        candidates: list[tuple[int, list[int]]] = []

        # first immediately before second
        head, flipped_a = (a, 0) if a[-1] == first else (a[::-1], 1)
        tail, flipped_b = (b, 0) if b[0] == second else (b[::-1], 1)
        candidates.append((flipped_a + flipped_b, head + tail))

        # second immediately before first
        head, flipped_b = (b, 0) if b[-1] == second else (b[::-1], 1)
        tail, flipped_a = (a, 0) if a[0] == first else (a[::-1], 1)
        candidates.append((flipped_a + flipped_b, head + tail))

        ordered = sorted(candidates, key=lambda item: item[0])
        unique: list[list[int]] = []
        for _, path in ordered:
            if path not in unique:
                unique.append(path)
        return unique

    def join(self, first: int, second: int, path: list[int]) -> None:
        """Replace the fragments of ``first`` and ``second`` by ``path``."""
        keep, drop = self._fragment_of[first], self._fragment_of[second]
        del self._fragments[drop]
        self._fragments[keep] = path
        for stop in path:
            self._fragment_of[stop] = keep
