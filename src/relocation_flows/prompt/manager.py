"""PromptManager — Jinja2-based prompt renderer for the AI generator.

Loads templates from the ``template/`` directory and renders a
``GenerationRequest`` into the prompt for its flow.  Templates are
dispatched by flow type; each receives the answers, the profile, and
the derived values (names, consulate address, visa label, date) the
generator computes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import jinja2

from relocation_flows.models.conversation import Answer, GenerationRequest
from relocation_flows.models.flow import FlowType

# --- Flow-to-template mapping ---
_FLOW_TEMPLATES: dict[FlowType, str] = {
    FlowType.COVER_LETTER: "cover_letter.jinja2",
    FlowType.FINANCIAL_STATEMENT: "financial_statement.jinja2",
    FlowType.ATTESTATION: "attestation.jinja2",
    FlowType.ACCOMMODATION_LETTER: "accommodation_letter.jinja2",
    FlowType.PET_RELOCATION: "pet_relocation.jinja2",
    FlowType.FRENCH_MORTGAGES: "french_mortgages.jinja2",
    FlowType.APOSTILLE: "apostille.jinja2",
    FlowType.BANK_RATINGS: "bank_ratings.jinja2",
}


def _joined(value: Answer | None, sep: str = ", ") -> str:
    """Render multi-choice answers as one line."""
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return sep.join(str(v) for v in value if v)
    return str(value)


class PromptManager:
    """Jinja2-based prompt renderer.

    Args:
        template_dir: optional override for the template directory.
            Defaults to ``template/`` sibling of this module.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        if template_dir is None:
            template_dir = Path(__file__).parent / "template"
        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
            # Missing variables should break loudly in tests, not vanish
            undefined=jinja2.StrictUndefined,
        )
        self._env.filters["joined"] = _joined

    def render_generation(self, request: GenerationRequest, **derived: Any) -> str:
        """Render the prompt for *request*'s flow.

        Args:
            derived: values computed by the caller (``full_name``,
                ``user_name``, ``current_date``, ``consulate``,
                ``visa_type``) that templates reference directly.

        Raises:
            KeyError: if the flow has no template.
        """
        template_name = _FLOW_TEMPLATES[request.flow_type]
        return self.render(
            template_name,
            answers=request.answers,
            profile=request.profile,
            **derived,
        )

    def render(self, template_name: str, **context: Any) -> str:
        """Render a named template with arbitrary context."""
        template = self._env.get_template(template_name)
        return template.render(**context).strip()
