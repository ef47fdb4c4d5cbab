"""
Intervention planning for crisis risk predictions.

Maps a risk level to the clinician-facing intervention plan and to the flat
list of recommendations returned alongside every prediction.
"""

from typing import Any, Dict, List, Optional


INTERVENTION_PLANS: Dict[str, str] = {
    "critico": (
        "INTERVENÇÃO IMEDIATA NECESSÁRIA:\n"
        "1. Contato telefônico em 24h\n"
        "2. Avaliação presencial urgente\n"
        "3. Ativação de rede de apoio\n"
        "4. Monitoramento diário\n"
        "5. Considerar encaminhamento psiquiátrico"
    ),
    "alto": (
        "INTERVENÇÃO PRIORITÁRIA:\n"
        "1. Reagendar sessão para esta semana\n"
        "2. Aumentar frequência de contato\n"
        "3. Atividades de estabilização emocional\n"
        "4. Revisão do plano terapêutico\n"
        "5. Envolvimento de familiares se apropriado"
    ),
    "medio": (
        "MONITORAMENTO ATIVO:\n"
        "1. Check-in em 2-3 dias\n"
        "2. Atividades de autorregulação\n"
        "3. Reforço de estratégias de enfrentamento\n"
        "4. Acompanhar evolução dos indicadores\n"
        "5. Ajustar plano de tarefas"
    ),
}

RECOMMENDATIONS: Dict[str, List[str]] = {
    "critico": [
        "Contato imediato com o paciente",
        "Considere atendimento presencial urgente",
        "Avalie necessidade de suporte psiquiátrico",
        "Ative rede de apoio do paciente",
    ],
    "alto": [
        "Agendar sessão adicional esta semana",
        "Intensificar comunicação com o paciente",
        "Revisar estratégias terapêuticas",
        "Monitorar evolução diariamente",
    ],
    "medio": [
        "Fazer check-in em 2-3 dias",
        "Propor atividades de estabilização",
        "Reforçar técnicas de enfrentamento",
        "Acompanhar indicadores",
    ],
    "baixo": [
        "Manter cronograma regular",
        "Continuar monitoramento",
        "Reforçar progressos positivos",
    ],
}

INDICATOR_LABELS: Dict[str, str] = {
    "low_mood": "Humor baixo",
    "declining_mood": "Humor em declínio",
    "no_diary_activity": "Sem registros no diário",
    "communication_drop": "Queda na comunicação",
    "low_task_completion": "Baixa conclusão de tarefas",
}


def generate_intervention_plan(risk_level: str, indicators: Optional[List[Dict[str, Any]]] = None) -> Optional[str]:
    """
    Build the intervention plan text for a risk level.

    The template depends on the level alone; detected indicators are only
    appended as a summary line. ``baixo`` (or any unknown level) has no plan.
    """
    plan = INTERVENTION_PLANS.get(risk_level)
    if plan is None:
        return None

    if indicators:
        labels = [INDICATOR_LABELS.get(i.get("type"), str(i.get("type"))) for i in indicators]
        plan = f"{plan}\nIndicadores identificados: {', '.join(labels)}"

    return plan


def generate_recommendations(risk_level: str) -> List[str]:
    return list(RECOMMENDATIONS.get(risk_level, RECOMMENDATIONS["baixo"]))
