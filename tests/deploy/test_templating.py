from pathlib import Path

import pytest

from dotconverge.deploy.templating import TemplateRenderer, expand_env_vars
from dotconverge.errors import ConfigError


def test_evaluate_guards():
    r = TemplateRenderer()
    facts = {"zsh_config_installed": True, "tailscale_authed": False}
    assert r.evaluate("zsh_config_installed and not tailscale_authed", facts)
    assert r.evaluate("{{ tailscale_authed }}", facts) is False
    assert r.evaluate(True, {}) is True


def test_undefined_names_are_errors():
    r = TemplateRenderer()
    with pytest.raises(ConfigError):
        r.evaluate("nope", {})
    with pytest.raises(ConfigError):
        r.render_value("{{ nope }}/x", {})


def test_render_value_recurses():
    r = TemplateRenderer()
    out = r.render_value({"dest": "{{ home }}/.zshrc", "mode": 0o644, "l": ["{{ u }}"]}, {"home": "/h", "u": "me"})
    assert out == {"dest": "/h/.zshrc", "mode": 0o644, "l": ["me"]}


def test_resolve_loop_expression_keeps_native_types():
    r = TemplateRenderer()
    assert r.resolve_loop("{{ users }}", {"users": ["a", "b"]}) == ["a", "b"]
    assert r.resolve_loop(["{{ x }}", 2], {"x": "one"}) == ["one", 2]
    with pytest.raises(ConfigError):
        r.resolve_loop("{{ name }}", {"name": "not-a-list"})


def test_render_file(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("DC_TEST_SHELL", "/bin/zsh")
    (tmp_path / "rc.j2").write_text("user={{ host_user }} shell={{ shell }}\n")
    text = TemplateRenderer().render_file(tmp_path, "rc.j2", {"host_user": "me", "shell": "${DC_TEST_SHELL}"})
    assert text == "user=me shell=/bin/zsh\n"


def test_expand_env_vars_leaves_unknown_untouched(monkeypatch):
    monkeypatch.delenv("DC_TEST_MISSING", raising=False)
    assert expand_env_vars("${DC_TEST_MISSING}/x") == "${DC_TEST_MISSING}/x"
