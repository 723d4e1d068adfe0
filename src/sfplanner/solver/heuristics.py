"""Heuristic configuration identifiers and the search arguments they stand for."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Final

from sfplanner.constants import ADMISSIBLE_HEURISTICS

DEFAULT_SEARCH_ARGUMENTS: Final[tuple[str, ...]] = ("--search", "lazy_greedy(ff(cost_type=0))")

_FD_AUTOTUNE_1: Final[tuple[str, ...]] = (
    "--heuristic",
    "hFF=ff(cost_type=1)",
    "--heuristic",
    "hCea=cea(cost_type=0)",
    "--heuristic",
    "hCg=cg(cost_type=2)",
    "--heuristic",
    "hGoalCount=goalcount(cost_type=0)",
    "--heuristic",
    "hAdd=add(cost_type=0)",
    "--search",
    "lazy(alt([single(sum([g(),weight(hAdd, 7)])),"
    "single(sum([g(),weight(hAdd, 7)]),pref_only=true),"
    "single(sum([g(),weight(hCg, 7)])),"
    "single(sum([g(),weight(hCg, 7)]),pref_only=true),"
    "single(sum([g(),weight(hCea, 7)])),"
    "single(sum([g(),weight(hCea, 7)]),pref_only=true),"
    "single(sum([g(),weight(hGoalCount, 7)])),"
    "single(sum([g(),weight(hGoalCount, 7)]),pref_only=true)],"
    "boost=1000),"
    "preferred=[hCea,hGoalCount],reopen_closed=false,cost_type=1)",
)

_FD_AUTOTUNE_2: Final[tuple[str, ...]] = (
    "--heuristic",
    "hCea=cea(cost_type=2)",
    "--heuristic",
    "hCg=cg(cost_type=1)",
    "--heuristic",
    "hGoalCount=goalcount(cost_type=2)",
    "--heuristic",
    "hFF=ff(cost_type=0)",
    "--search",
    "lazy(alt([single(sum([weight(g(), 2),weight(hFF, 3)])),"
    "single(sum([weight(g(), 2),weight(hFF, 3)]),pref_only=true),"
    "single(sum([weight(g(), 2),weight(hCg, 3)])),"
    "single(sum([weight(g(), 2),weight(hCg, 3)]),pref_only=true),"
    "single(sum([weight(g(), 2),weight(hCea, 3)])),"
    "single(sum([weight(g(), 2),weight(hCea, 3)]),pref_only=true),"
    "single(sum([weight(g(), 2),weight(hGoalCount, 3)])),"
    "single(sum([weight(g(), 2),weight(hGoalCount, 3)]),pref_only=true)],"
    "boost=200),"
    "preferred=[hCea,hGoalCount],reopen_closed=false,cost_type=1)",
)

_LANDMARKS: Final[tuple[str, ...]] = (
    "--landmarks",
    "lm=lm_rhw(reasonable_orders=true,lm_cost_type=2,cost_type=2)",
    "--heuristic",
    "hlm=lmcount(lm)",
)

_LM_LAZY: Final[tuple[str, ...]] = (
    *_LANDMARKS,
    "--search",
    "lazy_greedy(sum([g(),weight(hlm,10)]),boost=2000,cost_type=2)",
)

HEURISTICS: Final[Mapping[str, tuple[str, ...]]] = MappingProxyType(
    {
        "lmcut": ("--search", "astar(lmcut())"),
        "blind": ("--search", "astar(blind())"),
        "cg": ("--search", "lazy_greedy(cg(cost_type=2))"),
        "cea": ("--search", "lazy_greedy(cea(cost_type=2))"),
        "mad": ("--search", "lazy_greedy(mad())"),
        "cea2": (
            "--heuristic",
            "hCea=cea(cost_type=2)",
            "--search",
            "ehc(hCea, preferred=hCea,preferred_usage=0,cost_type=0)",
        ),
        "ff2": (
            "--heuristic",
            "hFF=ff(cost_type=1)",
            "--search",
            "lazy(alt([single(sum([g(),weight(hFF, 10)])),"
            "single(sum([g(),weight(hFF, 10)]),pref_only=true)],"
            "boost=2000),"
            "preferred=hFF,reopen_closed=false,cost_type=1)",
        ),
        "fd-autotune-1": _FD_AUTOTUNE_1,
        "fd-autotune-2": _FD_AUTOTUNE_2,
        "lama": (
            "--heuristic",
            "hlm,hff=lm_ff_syn(lm_rhw(reasonable_orders=true,lm_cost_type=2,cost_type=0),"
            " admissible=false, optimal=false, cost_type=0)",
            "--search",
            "lazy_greedy([hlm,hff],preferred=[hlm,hff])",
        ),
        "lm": _LM_LAZY,
        "lmlazy": _LM_LAZY,
        "lmeager": (
            *_LANDMARKS,
            "--search",
            "eager_greedy(sum([g(),weight(hlm,10)]),boost=2000,cost_type=2)",
        ),
    }
)


def search_arguments(heuristic: str) -> tuple[str, ...]:
    """Return solver arguments for ``heuristic``; unknown names fall back to lazy greedy FF."""

    return HEURISTICS.get(heuristic.strip(), DEFAULT_SEARCH_ARGUMENTS)


def is_known_heuristic(heuristic: str) -> bool:
    return heuristic.strip() in HEURISTICS


__all__ = [
    "ADMISSIBLE_HEURISTICS",
    "DEFAULT_SEARCH_ARGUMENTS",
    "HEURISTICS",
    "is_known_heuristic",
    "search_arguments",
]
