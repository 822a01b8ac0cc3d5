import re

SECTION_HEADINGS = ["🚗 Výhody:", "📦 Špecifikácia:", "🎯 Pre koho je určený:"]


def _heading_patterns(heading: str) -> tuple[re.Pattern, re.Pattern]:
    icon, _, label = heading.partition(" ")
    label_re = r"\s*".join(re.escape(w) for w in label.split(" "))
    plain = re.compile(rf"(^|\n)\s*{re.escape(icon)}\s*{label_re}\s*")
    strong = re.compile(rf"\s*<strong>\s*{re.escape(icon)}\s*{label_re}\s*</strong>\s*")
    return plain, strong


_PATTERNS = [(h, *_heading_patterns(h)) for h in SECTION_HEADINGS]


def format_description(desc: str | None) -> str:
    """
    Normalize the AI description into the store layout: each section heading
    bold and preceded by a blank line, every ✅ / • bullet on its own line,
    no runs of blank lines, newlines rendered as <br>.
    """
    if not desc:
        return ""
    s = str(desc).replace("\r\n", "\n").strip()

    for heading, plain, strong in _PATTERNS:
        s = plain.sub(f"\n\n<strong>{heading}</strong>\n", s)
        s = strong.sub(f"\n\n<strong>{heading}</strong>\n", s)

    s = re.sub(r"[ \t]+", " ", s)
    s = re.sub(r"\s*✅\s*", "\n✅ ", s)
    s = re.sub(r"\s*•\s*", "\n• ", s)
    s = re.sub(r"\n{3,}", "\n\n", s)

    for heading, _, _ in _PATTERNS:
        s = re.sub(rf"\n+\s*<strong>{re.escape(heading)}</strong>\n", f"\n\n<strong>{heading}</strong>\n", s)

    s = s.strip("\n")
    return s.replace("\n", "<br>")
