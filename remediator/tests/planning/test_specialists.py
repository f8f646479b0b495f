import pytest

from remediator.app.planning import (
    AltTextSpecialist,
    ContrastSpecialist,
    FocusSpecialist,
    GenericAriaSpecialist,
    InteractionSpecialist,
    NavigationSpecialist,
)
from remediator.app.planning.alt_text import alt_from_filename
from remediator.app.planning.colors import WHITE, contrast_ratio, parse_color
from remediator.app.planning.confidence import ConfidenceTier
from remediator.app.planning.interaction import NEEDS_ALTERNATIVE_ATTRIBUTE
from remediator.app.schemas.fixes import (
    AttributeFixInstruction,
    ContentFixInstruction,
    StyleFixInstruction,
)
from remediator.app.schemas.violations import ColorPair, PageContext
from remediator.app.utils.hashing import compute_content_hash
from remediator.tests.fixtures.factories import make_violation


URL = "https://example.test/about"


def _context(**kwargs) -> PageContext:
    return PageContext(url=URL, **kwargs)


# ---------------------------------------------------------------------------
# Alt text
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("filename", "alt"),
    [
        ("team-photo.jpg", "Team photo"),
        ("companyLogo.png", "Company logo"),
        ("annual_report_cover.webp", "Annual report cover"),
        ("DSC0042.jpg", None),
        ("image3.png", None),
        ("12345.gif", None),
    ],
)
def test_alt_from_filename(filename, alt):
    assert alt_from_filename(filename) == alt


def test_filename_beats_surrounding_text():
    instruction = AltTextSpecialist().plan_fix(
        make_violation(),
        _context(image_filename="team-photo.jpg", surrounding_text="Our people"),
    )

    assert isinstance(instruction, AttributeFixInstruction)
    assert instruction.params.attribute == "alt"
    assert instruction.params.value == "Team photo"
    assert "filename analysis" in instruction.reasoning


def test_surrounding_text_is_truncated():
    long_text = "word " * 60

    alt = AltTextSpecialist().generate_alt_text(
        make_violation(), _context(image_filename="DSC0001.jpg", surrounding_text=long_text)
    )

    assert alt.startswith("Image related to: ")
    assert alt.endswith("...")
    assert len(alt) == len("Image related to: ") + 125


def test_decorative_image_gets_empty_alt():
    violation = make_violation(html='<img src="/x.png" role="presentation">')

    instruction = AltTextSpecialist().plan_fix(violation, _context())

    assert instruction.params.value == ""
    assert "decorative" in instruction.reasoning


def test_logo_hint_uses_page_title():
    violation = make_violation(html='<img class="site-logo" src="/a.svg">')

    alt = AltTextSpecialist().generate_alt_text(violation, _context(title="Acme"))

    assert alt == "Acme logo"


def test_alt_confidence_drops_without_source():
    specialist = AltTextSpecialist()

    with_src = specialist.calculate_confidence(make_violation())
    without_src = specialist.calculate_confidence(make_violation(html="<img>"))

    assert with_src.value == 85
    assert without_src.value == 75
    assert without_src.requires_human_review is True


# ---------------------------------------------------------------------------
# Focus
# ---------------------------------------------------------------------------


def test_obscured_focus_gets_scroll_margin():
    instruction = FocusSpecialist().plan_fix(
        make_violation(rule_id="focus-not-obscured", selector="a.skip"), _context()
    )

    assert isinstance(instruction, StyleFixInstruction)
    assert instruction.params.css_class == "a11y-focus-visible"
    assert instruction.params.styles["scroll-margin-top"] == "80px"
    assert instruction.reasoning.startswith("WCAG 2.2 Focus Fix")


def test_focus_appearance_gets_outline():
    instruction = FocusSpecialist().plan_fix(
        make_violation(rule_id="focus-appearance"), _context()
    )

    assert instruction.params.css_class == "a11y-focus-indicator"
    assert "outline" in instruction.params.styles


def test_custom_component_lowers_focus_confidence():
    score = FocusSpecialist().calculate_confidence(
        make_violation(rule_id="focus-visible", selector="div[data-widget=tabs]")
    )

    assert score.value == 75
    assert "Custom component detected" in score.factors


# ---------------------------------------------------------------------------
# Interaction
# ---------------------------------------------------------------------------


def test_target_size_gets_minimum_dimensions():
    instruction = InteractionSpecialist().plan_fix(
        make_violation(rule_id="target-size", selector="a.icon"), _context()
    )

    assert instruction.params.styles["min-width"] == "24px"
    assert instruction.params.styles["min-height"] == "24px"


def test_dragging_is_marked_for_review():
    specialist = InteractionSpecialist()
    violation = make_violation(
        rule_id="dragging-movements",
        selector="div.slider",
        html='<div class="slider" draggable="true"></div>',
    )

    instruction = specialist.plan_fix(violation, _context())
    confidence = specialist.calculate_confidence(violation)
    suggestion = specialist.suggest_handoff_action(violation)

    assert instruction.params.attribute == NEEDS_ALTERNATIVE_ATTRIBUTE
    assert "REQUIRES HUMAN REVIEW" in instruction.reasoning
    assert confidence.tier is ConfidenceTier.LOW
    assert confidence.requires_human_review is True
    assert suggestion.startswith("Implement input-based alternative")


def test_target_size_needs_no_handoff_suggestion():
    violation = make_violation(rule_id="target-size", selector="a.icon")

    assert InteractionSpecialist().suggest_handoff_action(violation) is None
    assert AltTextSpecialist().suggest_handoff_action(make_violation()) is None


# ---------------------------------------------------------------------------
# Contrast
# ---------------------------------------------------------------------------


def test_contrast_colours_from_axe_description():
    violation = make_violation(
        rule_id="color-contrast",
        selector="p.muted",
        description=(
            "Element has insufficient color contrast of 2.85 "
            "(foreground color: #999999, background color: #ffffff, "
            "font size: 10.5pt)"
        ),
    )
    specialist = ContrastSpecialist()

    instruction = specialist.plan_fix(violation, _context())
    color = parse_color(instruction.params.styles["color"])

    assert instruction.params.css_class == "a11y-contrast-fix"
    assert contrast_ratio(color, WHITE) >= 4.6
    assert "#999999" in instruction.reasoning
    assert specialist.calculate_confidence(violation).tier is ConfidenceTier.HIGH


def test_context_colours_take_precedence():
    violation = make_violation(rule_id="color-contrast", html="<h1>Title</h1>")
    context = _context(current_colors=ColorPair(foreground="#aaaaaa", background="#fff"))

    instruction = ContrastSpecialist().plan_fix(violation, context)
    color = parse_color(instruction.params.styles["color"])

    assert ContrastSpecialist.target_ratio(violation) == pytest.approx(3.1)
    assert contrast_ratio(color, WHITE) >= 3.1
    assert "large text" in instruction.reasoning


def test_contrast_defaults_when_colours_unknown():
    violation = make_violation(rule_id="color-contrast", description="Low contrast")

    fg, bg = ContrastSpecialist.extract_colors(violation, _context())

    assert (fg, bg) == ((150, 150, 150), (255, 255, 255))
    assert ContrastSpecialist().calculate_confidence(violation).value == 80


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("rule_id", "html", "expected"),
    [
        ("tabindex", '<a href="/" tabindex="5">Home</a>', ("tabindex", "0")),
        ("scrollable-region-focusable", "<div></div>", ("tabindex", "0")),
        ("focus-order-semantics", "<div>Text</div>", ("tabindex", "-1")),
        ("keyboard", '<div onclick="go()">Go</div>', ("role", "button")),
        ("keyboard", "<button>Go</button>", ("tabindex", "0")),
        ("link-name", '<a href="/x" title="Pricing"></a>', ("aria-label", "Pricing")),
        ("button-name", '<button class="icon-search"></button>', ("aria-label", "Search")),
        ("bypass", "<body></body>", ("aria-label", "Skip to main content")),
    ],
)
def test_navigation_strategy(rule_id, html, expected):
    violation = make_violation(rule_id=rule_id, html=html)

    assert NavigationSpecialist.strategy(violation) == expected


def test_unlabelled_control_lowers_confidence():
    violation = make_violation(rule_id="button-name", html='<button class="x"></button>')

    score = NavigationSpecialist().calculate_confidence(violation)

    assert score.value == 65
    assert score.requires_human_review is True


# ---------------------------------------------------------------------------
# Generic fallback
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("rule_id", "html", "expected"),
    [
        ("landmark-one-main", "<main>", ("role", "main")),
        ("aria-required-attr", "<div>", ("aria-required", "true")),
        ("aria-toggle-state-pressed", "<div>", ("aria-pressed", "false")),
        ("aria-hidden-focus", "<div>", ("aria-hidden", "false")),
        ("form-field-invalid", "<input>", ("aria-invalid", "true")),
        ("unknown", "<span>Help</span>", ("aria-label", "Help")),
    ],
)
def test_generic_fix_inference(rule_id, html, expected):
    violation = make_violation(rule_id=rule_id, html=html)

    assert GenericAriaSpecialist.determine_fix(violation) == expected


def test_help_text_becomes_label():
    violation = make_violation(rule_id="label", html="<input>", help="Ensure search box")

    assert GenericAriaSpecialist.determine_fix(violation) == ("aria-label", "search box")


def test_empty_heading_gets_content_fix():
    violation = make_violation(rule_id="empty-heading", selector="h2.intro", html="<h2></h2>")

    instruction = GenericAriaSpecialist().plan_fix(
        violation, _context(surrounding_text="  Opening hours and prices  ")
    )

    assert isinstance(instruction, ContentFixInstruction)
    assert instruction.params.inner_text == "Opening hours and prices"
    assert instruction.params.original_text_hash == compute_content_hash("")


def test_generic_confidence_is_low():
    score = GenericAriaSpecialist().calculate_confidence(make_violation(rule_id="x"))

    assert score.tier is ConfidenceTier.LOW
    assert "Generic fallback fix" in score.factors
