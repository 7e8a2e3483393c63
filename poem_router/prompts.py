# poem_router/prompts.py
"""
Prompt construction for Sinterklaas poems.

The instructions are written in Dutch regardless of the output language;
the target language is named inside the prompt.
"""

from __future__ import annotations

from .constants import LANGUAGE_NAMES
from .models import PoemRequest

OPENING_AND_CLOSING = (
    'BELANGRIJK: Begin je antwoord met "Madrid, 5 december" gevolgd door twee lege regels, '
    'en eindig met twee lege regels gevolgd door "Sint en Piet".'
)

ONLY_THE_POEM = "Schrijf alleen het gedicht, zonder extra uitleg of opmerkingen."

_TRADITION_RULES = (
    "- Gebruik geen emoji's in het gedicht zelf\n"
    '- Gebruik NOOIT de term "zwarte piet" - gebruik alleen "Piet" of "Sint en Piet"\n'
    "- Verwijs NOOIT naar de kleur van Piet of naar kleuren in relatie tot mensen of personages"
)


def tone_for(friendliness: float) -> str:
    if friendliness > 70:
        return "heel vriendelijk en positief"
    if friendliness > 40:
        return "neutraal en gebalanceerd"
    return "grappig en scherp met een vleugje humor"


def language_name(code: str | None) -> str:
    return LANGUAGE_NAMES.get(code or "", LANGUAGE_NAMES["nl"])


def gender_label(age: int, gender: str) -> str:
    if age < 10:
        return "jongetje" if gender == "jongen" else "meisje"
    if age < 18:
        return "jongen" if gender == "jongen" else "meisje"
    return "man" if gender == "man" else "vrouw"


def _parse_age(raw: str) -> int | None:
    digits = ""
    for char in raw.strip():
        if not char.isdigit():
            break
        digits += char
    return int(digits) if digits else None


def humanize_instructions(request: PoemRequest) -> str:
    """Extra instructions that make the poem read as written by the author."""
    if not request.is_humanize or not request.author_age or not request.author_gender:
        return ""
    age = _parse_age(request.author_age)
    if age is None:
        return ""

    label = gender_label(age, request.author_gender)
    if age < 10:
        quirks = (
            f"- Voeg 2-3 kleine foutjes toe die typisch zijn voor een {age}-jarig {label}:\n"
            '  * Kleine spelfouten (bijvoorbeeld "sint" i.p.v. "Sint", of "piet" i.p.v. "Piet")\n'
            "  * Eenvoudige woordkeuze en korte zinnen\n"
            "  * Soms een woord dat niet helemaal klopt maar wel logisch is\n"
            "  * Mogelijk een kleine grammaticafout die natuurlijk klinkt voor deze leeftijd"
        )
    elif age < 18:
        quirks = (
            f"- Voeg 2-3 kleine foutjes toe die typisch zijn voor een {age}-jarige {label}:\n"
            "  * Soms een woord vergeten of een kleine typo\n"
            "  * Mogelijk een informele woordkeuze die tussendoor sluipt\n"
            '  * Een kleine inconsistentie in spelling (bijvoorbeeld "Sint" en "sint" door elkaar)\n'
            "  * Soms een woord dat bijna goed is maar net niet perfect"
        )
    else:
        quirks = (
            f"- Voeg 2-3 subtiele foutjes toe die typisch zijn voor een {age}-jarige {label}:\n"
            "  * Een kleine spelfout of typo die snel gemaakt kan worden\n"
            "  * Mogelijk een woord dat verkeerd gespeld is maar wel begrijpelijk\n"
            "  * Soms een kleine grammatica-inconsistentie\n"
            "  * Een subtiele fout die suggereert dat het handgeschreven zou kunnen zijn"
        )

    return (
        "\n\nBELANGRIJK - HUMANIZE MODUS:\n"
        f"Het gedicht wordt geschreven door een {age}-jarige {label} en moet daarom authentiek klinken:\n"
        f"{quirks}\n"
        "- De foutjes moeten subtiel en natuurlijk zijn - niet te opvallend\n"
        "- Het gedicht moet nog steeds leesbaar en begrijpelijk zijn"
    )


def build_prompt(request: PoemRequest, default_language: str = "nl") -> str:
    """Render the full generation prompt for *request*."""
    name = request.recipient_name
    lang = language_name(request.poem_language or default_language)
    tone = tone_for(request.friendliness)
    facts = (
        f"- Gebruik deze feiten over {name}: {request.recipient_facts}\n"
        if request.recipient_facts
        else ""
    )

    if request.is_classic:
        header = f"Schrijf een klassiek Sinterklaas gedicht in het {lang} voor {name}."
        rules = (
            "Belangrijke instructies voor klassieke stijl:\n"
            f"- Het gedicht moet precies {request.num_lines} regels bevatten\n"
            "- Gebruik een strikte structuur: groepeer regels in sets van 4 "
            "(bijvoorbeeld voor 12 regels: 4+4+4)\n"
            "- Elke groep van 4 regels moet een AABB rijmstructuur hebben "
            "(regel 1 rijmt met regel 2, regel 3 rijmt met regel 4)\n"
            f"- De toon moet {tone} zijn\n"
            f"- Het gedicht moet persoonlijk zijn en verwijzen naar {name}\n"
            f"{facts}"
            "- Het gedicht moet traditioneel Nederlands zijn, zoals klassieke Sinterklaas gedichten\n"
            f'- Begin met "Lieve {name}," of "Beste {name},"\n'
            "- Maak het gedicht grappig, persoonlijk en passend bij de Sinterklaas traditie\n"
            f"{_TRADITION_RULES}\n"
            "- Houd je strikt aan de 4-regel groepen structuur"
        )
    else:
        header = f"Schrijf een vrij stromend Sinterklaas gedicht in het {lang} voor {name}."
        rules = (
            "Belangrijke instructies voor vrije stromende stijl:\n"
            f"- Het gedicht moet ongeveer {request.num_lines} regels bevatten (mag iets afwijken)\n"
            "- Gebruik VARIABELE regelgroepen: bijvoorbeeld 2+3+7, of 3+5+4, of 2+4+6, etc. "
            "(niet altijd 4+4+4)\n"
            "- Rijm is OPTIONEEL en mag variëren: sommige regels kunnen rijmen, andere niet\n"
            "- Als je rijmt, gebruik verschillende patronen: AABB, ABAB, ABCB, "
            "of zelfs alleen sporadisch rijmen\n"
            f"- De toon moet {tone} zijn\n"
            f"- Het gedicht moet persoonlijk zijn en verwijzen naar {name}\n"
            f"{facts}"
            "- Het gedicht moet modern en vrij zijn, maar nog steeds passend bij de Sinterklaas traditie\n"
            f'- Begin met "Lieve {name}," of "Beste {name}," of een andere persoonlijke opening\n'
            "- Maak het gedicht grappig, persoonlijk en natuurlijk klinkend\n"
            f"{_TRADITION_RULES}\n"
            "- Laat de structuur natuurlijk en vrij stromen - geen strikte patronen"
        )

    return (
        f"{header}\n\n{rules}{humanize_instructions(request)}\n\n"
        f"{OPENING_AND_CLOSING}\n\n{ONLY_THE_POEM}"
    )
