"""Multilingual section heading keywords.

Maps each known ``SectionType`` to the heading strings that introduce it in
English, French, German, Spanish, Portuguese, Italian, Arabic, Chinese,
Japanese, Russian, Korean, Turkish, Dutch and Polish. Matching is exact on
the trimmed heading and case-insensitive (casefold).

Public API:

* ``classify_section(text)``: heading text → section type (``"unknown"``).
* ``strip_numbering_prefix(text)``: drop ``"1.2 "``, ``"IV. "``, ``"B. "``.
* ``is_abstract_keyword(text)`` / ``is_references_keyword(text)``.
* ``MONOSPACE_FONTS``: default font families that signal code.

The tables are module-level immutable data built once at import time.
"""
from __future__ import annotations

import re
from types import MappingProxyType

from docimport.models import SectionType

# ---------------------------------------------------------------------------
# Keyword tables (declaration order is the classification priority)
# ---------------------------------------------------------------------------

_RAW_KEYWORDS: dict[str, tuple[str, ...]] = {
    "abstract": (
        "Abstract", "Summary", "Executive Summary",
        "Résumé", "Sommaire",                       # fr
        "Zusammenfassung", "Kurzfassung",           # de
        "Resumen",                                  # es
        "Resumo",                                   # pt
        "Riassunto",                                # it
        "ملخص",                                     # ar
        "摘要",                                      # zh
        "要旨", "概要",                               # ja
        "Аннотация",                                # ru
        "초록",                                      # ko
        "Özet",                                     # tr
        "Samenvatting",                             # nl
        "Streszczenie",                             # pl
    ),
    "introduction": (
        "Introduction",                             # en, fr
        "Einleitung",
        "Introducción",
        "Introdução",
        "Introduzione",
        "مقدمة",
        "引言", "前言",
        "はじめに", "序論",
        "Введение",
        "서론",
        "Giriş",
        "Inleiding",
        "Wstęp",
    ),
    "methods": (
        "Methods", "Methodology", "Materials and Methods", "Experimental",
        "Methods and Materials", "Experimental Methods", "Research Methods",
        "Méthodes", "Méthodologie", "Matériels et Méthodes",
        "Methoden", "Methodik", "Material und Methoden",
        "Métodos", "Metodología", "Materiales y Métodos",
        "Metodologia",                              # pt, it
        "Metodi",
        "方法", "研究方法",                            # zh, ja
        "Методы", "Методология",
        "방법", "연구방법",
    ),
    "results": (
        "Results", "Findings", "Results and Discussion",
        "Résultats",
        "Ergebnisse",
        "Resultados",                               # es, pt
        "Risultati",
        "结果",
        "結果",
        "Результаты",
        "결과",
    ),
    "discussion": (
        "Discussion", "Analysis", "Discussion and Analysis",
        "Diskussion",
        "Discusión",
        "Discussão",
        "Discussione",
        "讨论",
        "考察",
        "Обсуждение",
        "토론", "논의",
    ),
    "conclusion": (
        "Conclusion", "Conclusions", "Concluding Remarks",
        "Fazit", "Schlussfolgerungen",
        "Conclusión", "Conclusiones",
        "Conclusão", "Conclusões",
        "Conclusione", "Conclusioni",
        "结论",
        "結論", "まとめ",
        "Заключение",
        "결론",
    ),
    "references": (
        "References", "Bibliography", "Works Cited", "Literature",
        "Literature Cited", "Reference List",
        "Références", "Bibliographie",
        "Literaturverzeichnis", "Literatur", "Quellenverzeichnis",
        "Referencias", "Bibliografía",
        "Referências", "Bibliografia",               # pt, it, pl
        "Riferimenti",
        "المراجع",
        "参考文献",                                   # zh, ja
        "Литература", "Список литературы",
        "참고문헌",
        "Kaynakça",
        "Referenties", "Bibliografie",
        "Piśmiennictwo",
    ),
    "acknowledgements": (
        "Acknowledgements", "Acknowledgments", "Acknowledgement",
        "Remerciements",
        "Danksagung",
        "Agradecimientos",
        "Agradecimentos",
        "Ringraziamenti",
        "致谢",
        "謝辞",
        "Благодарности",
        "감사의 글",
    ),
    "appendix": (
        "Appendix", "Appendices", "Supplementary Material", "Supplementary",
        "Supporting Information",
        "Annexe", "Annexes",
        "Anhang", "Anlage",
        "Apéndice", "Anexo",                        # es, pt
        "Apêndice",
        "Appendice", "Allegato",
        "附录",
        "付録",
        "Приложение",
        "부록",
    ),
    "background": (
        "Background", "Related Work", "Literature Review", "State of the Art",
        "Previous Work", "Prior Work", "Theoretical Framework",
        "Contexte", "État de l'art", "Travaux connexes",
        "Hintergrund", "Stand der Forschung", "Stand der Technik",
        "Antecedentes", "Estado del arte",
        "背景", "相关工作", "文献综述",
    ),
    # "Literature Review" is shadowed by background, which is declared first.
    "literature_review": (
        "Literature Review", "Review of Literature",
        "Revue de littérature",
        "Literaturüberblick",
        "Revisión de la literatura",
    ),
    "table_of_contents": (
        "Table of Contents", "Contents",
        "Table des matières",
        "Inhaltsverzeichnis",
        "Índice", "Tabla de contenidos",
    ),
    "list_of_figures": (
        "List of Figures", "Figures",
        "Liste des figures",
        "Abbildungsverzeichnis",
    ),
    "list_of_tables": (
        "List of Tables", "Tables",
        "Liste des tableaux",
        "Tabellenverzeichnis",
    ),
}

SECTION_KEYWORDS: MappingProxyType[str, frozenset[str]] = MappingProxyType({
    section: frozenset(_RAW_KEYWORDS[section]) for section in _RAW_KEYWORDS
})

# Casefolded lookup tables, same order as SECTION_KEYWORDS.
_FOLDED: tuple[tuple[str, frozenset[str]], ...] = tuple(
    (section, frozenset(k.casefold() for k in keywords))
    for section, keywords in _RAW_KEYWORDS.items()
)
_FOLDED_BY_SECTION: dict[str, frozenset[str]] = dict(_FOLDED)

MONOSPACE_FONTS: frozenset[str] = frozenset({
    "Consolas",
    "Courier New",
    "Courier",
    "Monaco",
    "Menlo",
    "Lucida Console",
    "Liberation Mono",
    "DejaVu Sans Mono",
    "Source Code Pro",
    "Fira Code",
    "JetBrains Mono",
    "Cascadia Code",
    "Cascadia Mono",
    "Inconsolata",
    "Ubuntu Mono",
    "Noto Mono",
    "Roboto Mono",
    "IBM Plex Mono",
    "Hack",
    "Anonymous Pro",
    "PT Mono",
    "Droid Sans Mono",
})

# ---------------------------------------------------------------------------
# Numbering prefixes: "1. ", "1.1 ", "2.3. ", "IV. ", "B. "
# ---------------------------------------------------------------------------

_NUMBERING_PREFIX_RE = re.compile(
    r"^(?:\d+(?:\.\d+)*\.?\s+|[IVXLC]+\.\s+|[A-Z]\.\s+)(.+)$",
    re.DOTALL,
)


def strip_numbering_prefix(text: str) -> str:
    """Remove leading section-number prefixes, as long as some text remains.

    Stacked prefixes (``"1. A. Results"``) are all removed, so stripping an
    already stripped heading is a no-op.
    """
    while True:
        m = _NUMBERING_PREFIX_RE.match(text)
        if m is None:
            return text
        text = m.group(1)


def classify_section(heading_text: str | None) -> SectionType:
    """Classify heading text as a known section type, or ``"unknown"``.

    Both the trimmed text and its numbering-stripped form are tried, so
    ``"1. Introduction"`` and ``"Introduction"`` classify identically.
    """
    if heading_text is None or not heading_text.strip():
        return "unknown"
    trimmed = heading_text.strip()
    stripped = strip_numbering_prefix(trimmed)
    for section, keywords in _FOLDED:
        if stripped.casefold() in keywords or trimmed.casefold() in keywords:
            return section
    return "unknown"


def is_abstract_keyword(text: str | None) -> bool:
    """True if the trimmed text is exactly an abstract heading keyword."""
    if text is None or not text.strip():
        return False
    return text.strip().casefold() in _FOLDED_BY_SECTION["abstract"]


def is_references_keyword(text: str | None) -> bool:
    """True if the trimmed text is exactly a references heading keyword."""
    if text is None or not text.strip():
        return False
    return text.strip().casefold() in _FOLDED_BY_SECTION["references"]


def keywords_for(section: str) -> frozenset[str]:
    """Registered keywords for *section* (empty for ``"unknown"``)."""
    return SECTION_KEYWORDS.get(section, frozenset())
