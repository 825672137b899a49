"""
District -> Taluk -> Hobli hierarchy built from row adjacency.

The published tables list a District row, then its Taluk rows, each followed
by its Hobli rows. Nesting is therefore positional: a row belongs to the
nearest preceding District (and Taluk) row. ``fold_observation`` is one step
of that fold and ``build_hierarchy`` runs it over a whole table.
"""

import logging
from dataclasses import dataclass, field, replace
from functools import reduce
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple

from .preprocess import Level, Observation


logger = logging.getLogger(__name__)


class HistoryRecord(NamedTuple):
    normal_rainfall: float
    deviation_percent: float
    actual_rainfall: float


@dataclass(frozen=True)
class Taluk:
    name: str
    district: str
    hoblis: Tuple[str, ...] = ()

    def with_hobli(self, name: str) -> "Taluk":
        if name in self.hoblis:
            return self
        return replace(self, hoblis=self.hoblis + (name,))


@dataclass(frozen=True)
class District:
    name: str
    taluks: Tuple[Taluk, ...] = ()

    def find_taluk(self, name: str) -> Optional[Taluk]:
        for taluk in self.taluks:
            if taluk.name == name:
                return taluk
        return None

    def with_taluk(self, taluk: Taluk) -> "District":
        """Copy of this district with ``taluk`` replacing its namesake, or appended."""
        if self.find_taluk(taluk.name) is None:
            return replace(self, taluks=self.taluks + (taluk,))
        return replace(
            self,
            taluks=tuple(taluk if t.name == taluk.name else t for t in self.taluks),
        )


def history_key(
    level: Level,
    name: str,
    district: Optional[str] = None,
    taluk: Optional[str] = None,
) -> str:
    """
    Composite key of a node's history log.

    ``D|<district>``, ``T|<taluk>|<district>`` or
    ``H|<hobli>|<district>|<taluk>``.
    """
    if level is Level.DISTRICT:
        parts = [level.value, name]
    elif level is Level.TALUK:
        parts = [level.value, name, district or ""]
    else:
        parts = [level.value, name, district or "", taluk or ""]
    return "|".join(parts)


@dataclass(frozen=True)
class HierarchyState:
    current_district: Optional[str] = None
    current_taluk: Optional[str] = None
    districts: Mapping[str, District] = field(default_factory=dict)
    history: Mapping[str, Tuple[HistoryRecord, ...]] = field(default_factory=dict)

    def recorded(self, key: str, obs: Observation) -> Dict[str, Tuple[HistoryRecord, ...]]:
        """New history map with ``obs`` appended under ``key``."""
        record = HistoryRecord(
            normal_rainfall=obs.normal_rainfall,
            deviation_percent=obs.deviation_percent,
            actual_rainfall=obs.actual_rainfall,
        )
        return {**self.history, key: self.history.get(key, ()) + (record,)}


def fold_observation(state: HierarchyState, obs: Observation) -> HierarchyState:
    """
    Apply one observation and return the next state. ``state`` is left as is.

    Taluk rows with no current District, and Hobli rows with no current
    District or Taluk, are skipped and the same state is returned.
    Rows with an unrecognised level code are skipped as well.
    """
    level = Level.parse(obs.level)
    name = obs.name

    if level is Level.DISTRICT:
        districts = state.districts
        if name not in districts:
            districts = {**districts, name: District(name=name)}
        return replace(
            state,
            current_district=name,
            current_taluk=None,
            districts=districts,
            history=state.recorded(history_key(Level.DISTRICT, name), obs),
        )

    if level is Level.TALUK:
        if state.current_district is None:
            logger.debug("Skipping taluk %r that appears before any district.", name)
            return state
        district = state.districts[state.current_district]
        if district.find_taluk(name) is None:
            district = district.with_taluk(Taluk(name=name, district=district.name))
        return replace(
            state,
            current_taluk=name,
            districts={**state.districts, district.name: district},
            history=state.recorded(history_key(Level.TALUK, name, district.name), obs),
        )

    if level is Level.HOBLI:
        if state.current_district is None or state.current_taluk is None:
            logger.debug("Skipping hobli %r that appears before its taluk.", name)
            return state
        district = state.districts[state.current_district]
        taluk = district.find_taluk(state.current_taluk).with_hobli(name)
        district = district.with_taluk(taluk)
        return replace(
            state,
            districts={**state.districts, district.name: district},
            history=state.recorded(
                history_key(Level.HOBLI, name, district.name, taluk.name), obs
            ),
        )

    logger.debug("Skipping %r with unrecognised level code %r.", name, obs.level)
    return state


@dataclass(frozen=True)
class Hierarchy:
    districts: Tuple[District, ...]
    history: Mapping[str, Tuple[HistoryRecord, ...]]

    def district_names(self) -> List[str]:
        return [d.name for d in self.districts]

    def find_district(self, name: str) -> Optional[District]:
        for district in self.districts:
            if district.name == name:
                return district
        return None

    def taluk_names(self, district: str) -> List[str]:
        node = self.find_district(district)
        return [t.name for t in node.taluks] if node is not None else []

    def hobli_names(self, district: str, taluk: str) -> List[str]:
        node = self.find_district(district)
        if node is None:
            return []
        taluk_node = node.find_taluk(taluk)
        return list(taluk_node.hoblis) if taluk_node is not None else []

    def history_for(self, key: str) -> Tuple[HistoryRecord, ...]:
        return self.history.get(key, ())


def build_hierarchy(observations: Iterable[Observation]) -> Hierarchy:
    """
    Fold an ordered sequence of observations into the three-level tree and
    the per-node history map.
    """
    state = reduce(fold_observation, observations, HierarchyState())
    history = MappingProxyType(dict(state.history))
    hierarchy = Hierarchy(districts=tuple(state.districts.values()), history=history)
    logger.info(
        "Built hierarchy with %d districts and %d history keys.",
        len(hierarchy.districts),
        len(history),
    )
    return hierarchy
