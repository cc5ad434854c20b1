# ============================================================================
# src/exam_pipeline/constants/exam_categories.py
# ============================================================================
"""
Exam Result Taxonomy

Fixed category vocabulary used by the extraction service plus the canonical
exam names per category. The canonical lists drive default layout only:
extraction may return any other exam name and those are kept as overflow.
"""

from enum import Enum
from typing import Dict, FrozenSet, List, Optional


class ExamCategory(str, Enum):
    LAB_GERAIS = "LabGerais"
    PERFIL_LIPIDICO = "PerfilLipidico"
    HEPATICOS = "Hepaticos"
    INFLAMATORIOS = "Inflamatorios"
    HORMONAIS = "Hormonais"
    VITAMINAS = "Vitaminas"
    INFECCIOSOS = "Infecciosos"
    TUMORAIS = "Tumorais"
    CARDIACOS = "Cardiacos"
    IMAGEM = "Imagem"
    OUTROS = "Outros"


DEFAULT_CATEGORY = ExamCategory.LAB_GERAIS

CATEGORY_TITLES: Dict[ExamCategory, str] = {
    ExamCategory.LAB_GERAIS: "Exames Laboratoriais Gerais",
    ExamCategory.PERFIL_LIPIDICO: "Perfil Lipídico",
    ExamCategory.HEPATICOS: "Exames Hepáticos e Pancreáticos",
    ExamCategory.INFLAMATORIOS: "Inflamatórios e Imunológicos",
    ExamCategory.HORMONAIS: "Hormonais",
    ExamCategory.VITAMINAS: "Vitaminas e Minerais",
    ExamCategory.INFECCIOSOS: "Infecciosos / Sorologias",
    ExamCategory.TUMORAIS: "Marcadores Tumorais",
    ExamCategory.CARDIACOS: "Cardíacos e Musculares",
    ExamCategory.IMAGEM: "Imagem e Diagnóstico",
    ExamCategory.OUTROS: "Outros Exames",
}

CANONICAL_EXAMS: Dict[ExamCategory, List[str]] = {
    ExamCategory.LAB_GERAIS: [
        "Hemograma completo", "Plaquetas", "Glicose", "Ureia", "Creatinina",
        "Ácido Úrico", "Urina tipo 1 (EAS)", "Fezes",
    ],
    ExamCategory.PERFIL_LIPIDICO: [
        "Colesterol Total", "HDL", "LDL", "Triglicerídeos",
    ],
    ExamCategory.HEPATICOS: [
        "TGO (AST)", "TGP (ALT)", "Gama GT", "Bilirrubinas", "Amilase",
        "Lipase", "Albumina", "Proteínas totais e frações",
    ],
    ExamCategory.INFLAMATORIOS: [
        "PCR", "VHS", "Fator Reumatoide", "FAN", "Anti-DNA", "Anti-CCP",
        "ANCA", "D-Dímero", "Coagulograma",
    ],
    ExamCategory.HORMONAIS: [
        "TSH", "T3", "T4", "Prolactina", "LH", "FSH", "Testosterona",
        "Estradiol", "Progesterona", "DHEA", "Cortisol", "Insulina",
        "Hemoglobina glicada",
    ],
    ExamCategory.VITAMINAS: [
        "Vitamina D", "Vitamina B12", "Cálcio", "Fósforo", "Magnésio",
        "Sódio (Na)", "Potássio (K)",
    ],
    ExamCategory.INFECCIOSOS: [
        "Hepatite A", "Hepatite B", "Hepatite C", "HIV", "Sífilis (VDRL)",
        "Dengue", "Zika", "Chikungunya",
    ],
    ExamCategory.TUMORAIS: [
        "PSA", "CA 125", "CA 15-3", "CA 19-9", "CEA", "AFP", "Beta-HCG",
    ],
    ExamCategory.CARDIACOS: [
        "CK", "CK-MB", "Troponina",
    ],
    ExamCategory.IMAGEM: [
        "Raio-X", "Ultrassonografia", "Tomografia Computadorizada",
        "Ressonância Magnética", "Densitometria Óssea",
    ],
    ExamCategory.OUTROS: [
        "Ferritina", "Ferro sérico", "Cistatina C", "Gasometria arterial",
        "Urina 24h", "Colinesterase", "Tipagem sanguínea", "Beta-HCG",
    ],
}

# Membership sets keyed by raw id, built once
_CANONICAL_SETS: Dict[str, FrozenSet[str]] = {
    category.value: frozenset(names) for category, names in CANONICAL_EXAMS.items()
}


def is_known_category(category_id: str) -> bool:
    """True if the id belongs to the fixed category vocabulary."""
    return category_id in _CANONICAL_SETS


def is_canonical_exam(category_id: str, exam_name: str) -> bool:
    return exam_name in _CANONICAL_SETS.get(category_id, frozenset())


def category_title(category_id: str) -> Optional[str]:
    """Display title for a category id, None when the id is unknown."""
    try:
        return CATEGORY_TITLES[ExamCategory(category_id)]
    except ValueError:
        return None
