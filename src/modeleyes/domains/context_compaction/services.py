"""Context Compaction Domain Service."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from modeleyes.domains.ui_state.aggregates import UIState
from modeleyes.domains.ui_state.entities import UIElement

from .aggregates import CompactionConfig
from .events import ContextCompacted
from .value_objects import (
    BudgetUnit,
    CostModel,
    TokenEstimate,
    byte_length,
    serialize_compact,
)

logger = logging.getLogger(__name__)

# Projection used when full element details are not requested.
_DETAIL_FIELDS = ("id", "type", "text", "bounds", "interactable", "children", "parent")

# Last-resort projection for elements that must not be dropped silently.
_ESSENTIAL_FIELDS = ("id", "type", "text", "interactable")


def normalize_element(element: UIElement) -> Dict[str, Any]:
    """Strip default-valued fields and round bounds to integers.

    Lossless with respect to the canonical defaults: visible=True,
    interactable=False, and empty text/attributes/styles/children.
    """
    result: Dict[str, Any] = {"id": element.id, "type": element.type}
    if element.text:
        result["text"] = element.text
    if element.attributes:
        result["attributes"] = dict(element.attributes)
    result["bounds"] = element.bounds.rounded().to_dict()
    if element.interactable:
        result["interactable"] = True
    if not element.visible:
        result["visible"] = False
    if element.children:
        result["children"] = list(element.children)
    if element.parent is not None:
        result["parent"] = element.parent
    if element.styles:
        result["styles"] = dict(element.styles)
    return result


def normalize_state(state: UIState) -> Dict[str, Any]:
    """Normalize every element of a snapshot; metadata is kept as is."""
    payload = _state_skeleton(state)
    payload["elements"] = {
        element_id: normalize_element(state.elements[element_id])
        for element_id in state.traversal_order()
    }
    return payload


def _state_skeleton(state: UIState) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "timestamp": state.timestamp,
        "platform": state.platform,
        "application": state.application,
        "title": state.title,
    }
    if state.url is not None:
        payload["url"] = state.url
    payload["viewport"] = state.viewport.to_dict()
    payload["elements"] = {}
    if state.focus is not None:
        payload["focus"] = state.focus
    if state.hover is not None:
        payload["hover"] = state.hover
    payload["version"] = state.version
    return payload


def _project(normalized: Dict[str, Any], names: Tuple[str, ...]) -> Dict[str, Any]:
    return {name: normalized[name] for name in names if name in normalized}


@dataclass
class CompactionMetrics:
    """Metrics for a single compaction run."""
    raw_cost: int = 0
    normalized_cost: int = 0
    compacted_cost: int = 0
    elements_total: int = 0
    elements_included: int = 0
    elements_reduced: int = 0
    elements_dropped: int = 0

    @property
    def compression_ratio(self) -> float:
        if self.raw_cost == 0:
            return 0.0
        return 1.0 - (self.compacted_cost / self.raw_cost)

    @property
    def cost_saved(self) -> int:
        return max(0, self.raw_cost - self.compacted_cost)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "raw_cost": self.raw_cost,
            "normalized_cost": self.normalized_cost,
            "compacted_cost": self.compacted_cost,
            "elements_total": self.elements_total,
            "elements_included": self.elements_included,
            "elements_reduced": self.elements_reduced,
            "elements_dropped": self.elements_dropped,
            "compression_ratio": round(self.compression_ratio, 4),
        }


@dataclass
class CompactedContext:
    """Bounded snapshot ready for a token-limited consumer.

    ``state`` is wire-shaped. ``budget_satisfied`` is False when even the
    essential projection of every force-included element did not fit
    (or the empty skeleton alone exceeds the budget); the partial result
    is still returned.
    """
    state: Dict[str, Any]
    estimated_cost: int
    budget: int
    unit: BudgetUnit
    budget_satisfied: bool
    included_ids: List[str] = field(default_factory=list)
    reduced_ids: List[str] = field(default_factory=list)
    dropped_ids: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    metrics: CompactionMetrics = field(default_factory=CompactionMetrics)

    @property
    def element_count(self) -> int:
        return len(self.state.get("elements", {}))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uiState": self.state,
            "tokenCount": self.estimated_cost,
            "budget": self.budget,
            "unit": self.unit.value,
            "budgetSatisfied": self.budget_satisfied,
            "includedIds": list(self.included_ids),
            "reducedIds": list(self.reduced_ids),
            "droppedIds": list(self.dropped_ids),
            "metadata": dict(self.metadata),
            "metrics": self.metrics.to_dict(),
        }


@dataclass
class _Candidate:
    element: UIElement
    forced: bool
    score: float
    order: int


class ContextCompactor:
    """Shrinks a snapshot to fit a size or token budget.

    Pipeline:
    1. Normalize elements (strip defaults, round bounds)
    2. Score elements and apply type allow/deny lists
    3. Greedy fill in score order, checking the cost before each inclusion;
       interactable and forced elements fall back to an essential projection
    4. Prune references to elements that did not make it
    """

    def __init__(
        self,
        event_publisher: Optional[Callable[[object], None]] = None,
    ) -> None:
        self._event_publisher = event_publisher

    def score_element(self, state: UIState, element: UIElement, config: CompactionConfig) -> float:
        """Additive relevance score of one element."""
        rules = config.rules
        score = 0.0
        if element.interactable:
            score += rules.interactable_weight
        if element.visible:
            score += rules.visible_weight
        if element.id in (state.focus, state.hover):
            score += rules.focus_weight
        if element.has_text:
            score += rules.text_weight
        score += rules.depth_bonus(state.depth_of(element.id))
        return score

    def rank_elements(self, state: UIState, config: CompactionConfig) -> Tuple[List[UIElement], List[str]]:
        """
        Order compaction candidates and collect filtered-out ids.

        Non-renderable and hidden elements are never candidates. Of the
        rest, forced elements skip the type deny lists and come first,
        then descending score; ties keep canonical traversal order.

        Returns:
            Tuple of (ranked candidates, ids excluded before filling)
        """
        rules = config.rules
        candidates: List[_Candidate] = []
        excluded: List[str] = []

        for order, element in enumerate(state.iter_elements()):
            forced = rules.is_forced(element.type)
            if self._is_hidden(element, config) or \
                    (not forced and self._is_filtered_type(element, config)):
                excluded.append(element.id)
                continue
            candidates.append(_Candidate(
                element=element,
                forced=forced,
                score=self.score_element(state, element, config),
                order=order,
            ))

        candidates.sort(key=lambda c: (not c.forced, -c.score, c.order))
        if config.max_elements is not None and len(candidates) > config.max_elements:
            excluded.extend(c.element.id for c in candidates[config.max_elements:])
            candidates = candidates[:config.max_elements]
        return [c.element for c in candidates], excluded

    def compact(
        self,
        state: UIState,
        budget: Optional[int] = None,
        config: Optional[CompactionConfig] = None,
    ) -> CompactedContext:
        """
        Reduce ``state`` so its estimated cost stays within ``budget``.

        Args:
            state: Snapshot to compact
            budget: Overrides ``config.budget`` when given
            config: Compaction settings (default preset when omitted)

        Returns:
            CompactedContext whose elements are a subset of the
            normalized snapshot's elements
        """
        config = config or CompactionConfig.create_default()
        if budget is not None:
            config = config.with_overrides(budget=budget)
        cost_model = CostModel.for_unit(config.unit)

        metrics = CompactionMetrics(
            raw_cost=cost_model.estimate(state.to_dict()),
            normalized_cost=cost_model.estimate(normalize_state(state)),
            elements_total=state.element_count,
        )

        skeleton = _state_skeleton(state)
        skeleton_estimate = TokenEstimate.from_payload(skeleton, config.budget, cost_model)
        running_bytes = skeleton_estimate.byte_count
        budget_satisfied = skeleton_estimate.within_budget
        if not budget_satisfied:
            logger.warning(
                f"Metadata of version {state.version} alone exceeds the budget by "
                f"{skeleton_estimate.overage} {config.unit.value}"
            )

        ranked, dropped = self.rank_elements(state, config)
        included: Dict[str, Dict[str, Any]] = {}
        reduced: List[str] = []
        rules = config.rules

        for element in ranked:
            normalized = normalize_element(element)
            full = normalized if config.include_full_details else _project(normalized, _DETAIL_FIELDS)

            added = self._entry_bytes(element.id, full, first=not included)
            if cost_model.cost_of_bytes(running_bytes + added) <= config.budget:
                included[element.id] = full
                running_bytes += added
                continue

            forced = rules.is_forced(element.type)
            if element.interactable or forced:
                essential = _project(normalized, _ESSENTIAL_FIELDS)
                added = self._entry_bytes(element.id, essential, first=not included)
                if cost_model.cost_of_bytes(running_bytes + added) <= config.budget:
                    included[element.id] = essential
                    reduced.append(element.id)
                    running_bytes += added
                    continue
            if forced:
                budget_satisfied = False
            dropped.append(element.id)

        output = dict(skeleton)
        output["elements"] = self._prune_references(state, included)

        final_estimate = TokenEstimate.from_payload(output, config.budget, cost_model)
        estimated_cost = final_estimate.estimated_cost
        metrics.compacted_cost = estimated_cost
        metrics.elements_included = len(included)
        metrics.elements_reduced = len(reduced)
        metrics.elements_dropped = len(dropped)

        if not budget_satisfied:
            logger.warning(
                f"Budget of {config.budget} {config.unit.value} cannot hold all required "
                f"elements of version {state.version}; returning partial context"
            )
        logger.debug(
            f"Compacted version {state.version}: {metrics.raw_cost} -> {estimated_cost} "
            f"{config.unit.value}, {len(included)} kept ({len(reduced)} reduced), "
            f"{len(dropped)} dropped"
        )

        self._publish(ContextCompacted(
            version=state.version,
            unit=config.unit.value,
            budget=config.budget,
            raw_cost=metrics.raw_cost,
            compacted_cost=estimated_cost,
            elements_included=metrics.elements_included,
            elements_reduced=metrics.elements_reduced,
            elements_dropped=metrics.elements_dropped,
            budget_satisfied=budget_satisfied,
        ))

        return CompactedContext(
            state=output,
            estimated_cost=estimated_cost,
            budget=config.budget,
            unit=config.unit,
            budget_satisfied=budget_satisfied,
            included_ids=list(output["elements"]),
            reduced_ids=reduced,
            dropped_ids=dropped,
            metadata={
                "timestamp": state.timestamp,
                "platform": state.platform,
                "application": state.application,
                "title": state.title,
                "url": state.url,
                "version": state.version,
            },
            metrics=metrics,
        )

    @staticmethod
    def _is_hidden(element: UIElement, config: CompactionConfig) -> bool:
        if not element.is_renderable:
            return True
        return not element.visible and not config.include_invisible

    @staticmethod
    def _is_filtered_type(element: UIElement, config: CompactionConfig) -> bool:
        rules = config.rules
        if rules.is_excluded_type(element.type):
            return True
        return rules.is_generic_container(element.type) and not element.interactable \
            and not element.has_text

    @staticmethod
    def _entry_bytes(element_id: str, payload: Dict[str, Any], first: bool) -> int:
        """Bytes one ``"id":{...}`` entry adds to the elements object."""
        entry = serialize_compact(element_id) + ":" + serialize_compact(payload)
        return byte_length(entry) + (0 if first else 1)

    @staticmethod
    def _prune_references(
        state: UIState, included: Dict[str, Dict[str, Any]]
    ) -> Dict[str, Dict[str, Any]]:
        """Drop child/parent ids that point outside the kept set.

        Only ever removes content, so the cost cannot grow. Elements are
        emitted in canonical traversal order.
        """
        result: Dict[str, Dict[str, Any]] = {}
        for element_id in state.traversal_order():
            payload = included.get(element_id)
            if payload is None:
                continue
            payload = dict(payload)
            if "children" in payload:
                children = [c for c in payload["children"] if c in included]
                if children:
                    payload["children"] = children
                else:
                    del payload["children"]
            if "parent" in payload and payload["parent"] not in included:
                del payload["parent"]
            result[element_id] = payload
        return result

    def _publish(self, event: object) -> None:
        if self._event_publisher:
            try:
                self._event_publisher(event)
            except Exception as e:
                logger.error(f"Failed to publish event: {e}")
