from typing import Dict, List

from ..models.safety import RiskLevel, SupportContact

SUPPORT_RESOURCES: Dict[str, SupportContact] = {
    "CVV": SupportContact(
        name="Centro de Valorização da Vida (CVV)",
        phone="188",
        description="Apoio emocional e prevenção do suicídio. Atendimento 24h, gratuito e sigiloso",
    ),
    "SAMU": SupportContact(
        name="SAMU",
        phone="192",
        description="Emergências médicas. Atendimento 24h gratuito",
    ),
    "LIGUE_180": SupportContact(
        name="Central de Atendimento à Mulher",
        phone="180",
        description="Apoio em casos de violência contra a mulher. Atendimento 24h gratuito",
    ),
}

# crisis line, emergency line, domestic-violence line
CRISIS_RESOURCE_IDS: List[str] = ["CVV", "SAMU", "LIGUE_180"]

SOFT_SUPPORT_RESOURCE_IDS: List[str] = [
    "CONVERSAR_COM_ALGUEM_DE_CONFIANCA",
    "APOIO_PROFISSIONAL",
    "CIRCULOS_DE_APOIO",
]


def suggested_resources(level: RiskLevel, requires_human_review: bool) -> List[str]:
    if level == RiskLevel.RISK or requires_human_review:
        return list(CRISIS_RESOURCE_IDS)
    if level == RiskLevel.WATCH:
        return list(SOFT_SUPPORT_RESOURCE_IDS)
    return []


def emergency_contacts() -> List[SupportContact]:
    return [SUPPORT_RESOURCES[rid].model_copy() for rid in CRISIS_RESOURCE_IDS]
