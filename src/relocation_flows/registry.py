"""QuestionSetRegistry — loads every flow's YAML into typed question sets.

This is the single source of truth for flow definitions at runtime.  The
registry is loaded once at startup and never mutated afterwards.

Usage::

    registry = QuestionSetRegistry()    # defaults to the packaged flows/
    registry.load()                     # parse all YAML files

    qs = registry.get(FlowType.COVER_LETTER)
    first = qs.questions[0]
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from relocation_flows.errors import UnknownFlow
from relocation_flows.models.flow import FlowType
from relocation_flows.models.question import QuestionSet
from relocation_flows.models.schema import ApostilleOfficeConst, ConsulateConst, VisaTypeConst

logger = logging.getLogger(__name__)


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


class QuestionSetRegistry:
    """Loads ``flows/*.yaml`` and ``flows/const/*.yaml`` and provides lookup.

    Attributes populated after :meth:`load`:

        question_sets — dict[FlowType, QuestionSet]
        consulates    — dict[value, ConsulateConst]
        visa_types    — dict[value, VisaTypeConst]
        apostille_offices — dict[state code, ApostilleOfficeConst]
    """

    def __init__(self, flows_dir: str | Path | None = None) -> None:
        if flows_dir is None:
            flows_dir = Path(__file__).parent / "flows"
        self._base = Path(flows_dir)

        # Populated by load()
        self.question_sets: dict[FlowType, QuestionSet] = {}
        self.consulates: dict[str, ConsulateConst] = {}
        self.visa_types: dict[str, VisaTypeConst] = {}
        self.apostille_offices: dict[str, ApostilleOfficeConst] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Parse all YAML files under the flows directory into typed models.

        Call this once at startup.  Raises ``FileNotFoundError`` if a flow
        file is missing and ``UnknownFlow`` if a file declares a flow type
        that is not part of ``FlowType``.
        """
        self._load_constants()
        self._load_question_sets()
        logger.info(
            "QuestionSetRegistry loaded: %d flows, %d consulates, %d visa types",
            len(self.question_sets),
            len(self.consulates),
            len(self.visa_types),
        )

    def _load_constants(self) -> None:
        const_dir = self._base / "const"

        for raw in load_yaml(const_dir / "consulates.yaml"):
            consulate = ConsulateConst(**raw)
            self.consulates[consulate.value] = consulate

        for raw in load_yaml(const_dir / "visa_types.yaml"):
            visa = VisaTypeConst(**raw)
            self.visa_types[visa.value] = visa

        for raw in load_yaml(const_dir / "apostille_offices.yaml"):
            office = ApostilleOfficeConst(**raw)
            self.apostille_offices[office.code.upper()] = office

    def _load_question_sets(self) -> None:
        """Load one YAML file per ``FlowType`` member.

        Every enum member must have a file, so a deployment can never
        advertise a flow it cannot serve.
        """
        for flow_type in FlowType:
            raw = load_yaml(self._base / f"{flow_type.value}.yaml")
            declared = FlowType.parse(raw.get("flow_type", flow_type.value))
            if declared is not flow_type:
                raise UnknownFlow(f"{declared.value} declared in {flow_type.value}.yaml")
            qs = QuestionSet(**raw)
            self._warn_duplicate_keys(qs)
            self.question_sets[flow_type] = qs

    @staticmethod
    def _warn_duplicate_keys(qs: QuestionSet) -> None:
        # Allowed: the later answer simply overwrites the earlier one
        seen: set[str] = set()
        for q in qs.questions:
            if q.key in seen:
                logger.warning(
                    "Flow %s reuses question key %r; later answers overwrite earlier ones",
                    qs.flow_type.value, q.key,
                )
            seen.add(q.key)

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def get(self, flow_type: str | FlowType) -> QuestionSet:
        """Return the question set for a flow.

        Raises:
            ValidationError: if *flow_type* is empty.
            UnknownFlow: if the flow is unknown or was not loaded.
        """
        ft = FlowType.parse(flow_type)
        try:
            return self.question_sets[ft]
        except KeyError:
            raise UnknownFlow(ft.value) from None

    def flow_types(self) -> list[FlowType]:
        """All loaded flow types, in enum order."""
        return [ft for ft in FlowType if ft in self.question_sets]

    def consulate_address(self, value: str | None) -> str:
        """Address block for a consulate answer; Washington when unknown."""
        consulate = self.consulates.get(value or "") or self.consulates.get("washington")
        return consulate.address if consulate else ""

    def visa_label(self, value: str | None) -> str:
        """Formal visa name for a visa_type answer; visitor when unknown."""
        visa = self.visa_types.get(value or "") or self.visa_types.get("visitor")
        return visa.label if visa else ""

    def apostille_office(self, state: str | None) -> ApostilleOfficeConst | None:
        """Issuing office for a state given as code ("CA") or name ("california")."""
        if not state or not state.strip():
            return None
        needle = state.strip()
        office = self.apostille_offices.get(needle.upper())
        if office is not None:
            return office
        for candidate in self.apostille_offices.values():
            if candidate.name.lower() == needle.lower():
                return candidate
        return None
