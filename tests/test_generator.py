from __future__ import annotations

from itertools import product
from math import factorial

import pytest

from ayto_model.engines import AssignmentGenerator, count_assignments, max_partners_per_woman


def _brute_count(n_men: int, n_women: int) -> int:
    cap = max_partners_per_woman(n_men, n_women)
    return sum(
        1 for combo in product(range(n_women), repeat=n_men)
        if all(combo.count(w) <= cap for w in range(n_women))
    )


@pytest.mark.parametrize("n", [1, 2, 3, 4, 5])
def test_equal_groups_yield_every_permutation_once(n: int) -> None:
    names = [f"p{i}" for i in range(n)]
    generator = AssignmentGenerator(names, [f"q{i}" for i in range(n)])

    assignments = list(generator.iter_assignments())

    assert len(assignments) == factorial(n)
    assert len(set(assignments)) == factorial(n)
    assert all(sorted(a) == list(range(n)) for a in assignments)
    assert generator.generated == factorial(n)
    assert generator.budget_exhausted is False


@pytest.mark.parametrize(
    "n_men,n_women",
    [(3, 2), (4, 3), (5, 3), (5, 4), (2, 3), (3, 1)],
)
def test_unequal_groups_respect_the_per_woman_cap(n_men: int, n_women: int) -> None:
    generator = AssignmentGenerator([f"m{i}" for i in range(n_men)], [f"w{j}" for j in range(n_women)])
    cap = generator.max_per_woman

    assignments = list(generator.iter_assignments())

    assert len(assignments) == len(set(assignments))
    assert all(len(a) == n_men for a in assignments)
    assert all(a.count(w) <= cap for a in assignments for w in range(n_women))
    assert len(assignments) == _brute_count(n_men, n_women)
    assert len(assignments) == count_assignments(n_men, n_women)


def test_count_assignments_known_values() -> None:
    assert count_assignments(3, 2) == 6
    assert count_assignments(5, 3) == 90
    assert count_assignments(2, 3) == 6
    assert count_assignments(10, 10) == factorial(10)
    assert count_assignments(0, 3) == 1
    assert count_assignments(3, 0) == 0


def test_budget_stops_generation_and_sets_flag() -> None:
    generator = AssignmentGenerator(list("ABCD"), list("WXYZ"), budget=5)

    assignments = list(generator.iter_assignments())

    assert len(assignments) == 5
    assert generator.generated == 5
    assert generator.budget_exhausted is True
    assert generator.target_count() == 5


def test_budget_equal_to_space_is_not_exhausted() -> None:
    generator = AssignmentGenerator(list("ABCD"), list("WXYZ"), budget=24)

    assert len(list(generator.iter_assignments())) == 24
    assert generator.budget_exhausted is False


def test_iter_matchings_maps_indices_to_names() -> None:
    generator = AssignmentGenerator(["A", "B"], ["X", "Y"])

    matchings = list(generator.iter_matchings())

    assert [m.as_dict() for m in matchings] == [{"A": "X", "B": "Y"}, {"A": "Y", "B": "X"}]
    assert matchings[1].partner_of("A") == "Y"


def test_empty_group_generates_nothing() -> None:
    generator = AssignmentGenerator([], ["X"])

    assert list(generator.iter_assignments()) == []
    assert generator.budget_exhausted is False
