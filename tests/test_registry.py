from retrocompositor.styles.registry import StyleRegistry
from retrocompositor.styles.vhs import VhsStyle


def test_builtin_styles_available():
    registry = StyleRegistry()
    assert registry.has_style("vhs")
    assert registry.has_style("film")
    assert registry.has_style("vintage")
    assert registry.has_style("boards")
    assert len(registry) == 4


def test_get_style():
    registry = StyleRegistry()
    vhs_style = registry.get_style("vhs")
    assert vhs_style is not None
    assert vhs_style.name == "vhs"
    assert registry.get_style("unknown") is None


def test_available_styles():
    registry = StyleRegistry()
    styles = registry.available_styles()
    assert "vhs" in styles
    assert "film" in styles
    assert "vintage" in styles
    assert "boards" in styles


def test_custom_style_registration():
    registry = StyleRegistry()
    registry.register("custom", lambda: VhsStyle())
    assert registry.has_style("custom")
    assert len(registry) == 5


def test_contains_operator():
    registry = StyleRegistry()
    assert "film" in registry
    assert "missing" not in registry


def test_get_style_returns_fresh_instances():
    registry = StyleRegistry()
    first = registry.get_style("film")
    second = registry.get_style("film")
    assert first is not second
    assert first.name == second.name == "film"


def test_builtin_names_match_instances():
    registry = StyleRegistry()
    for name in registry.available_styles():
        assert registry.get_style(name).name == name


def test_registering_existing_name_replaces_it():
    registry = StyleRegistry()
    registry.register("film", lambda: VhsStyle())
    assert len(registry) == 4
    assert registry.get_style("film").name == "vhs"