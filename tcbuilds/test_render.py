"""
Pytest tests for the Jinja2 page renderer (tcbuilds/render.py).
"""

import pytest

from tcbuilds.exceptions import ConfigError
from tcbuilds.render import PageRenderer
from tcbuilds.types import ArtifactFile, Build, BuildConfiguration, Project

BASE = "https://tc.example.com"


def _bt(bt_id, name, project, files=(), number="42"):
    build = Build(
        id=1,
        number=number,
        status_text="Tests passed: 10",
        finish_date="20170412T101010+0200",
        web_url=f"{BASE}/viewLog.html?buildId=1",
        files=tuple(files),
    )
    return BuildConfiguration(bt_id, name, project, build=build)


def _file(name, size=1500000):
    return ArtifactFile(name=name, size=size, download_path=f"/guestAuth/artifacts/{name}")


def _render(projects, **kwargs):
    return PageRenderer(branch="main", base_url=BASE, **kwargs).render(projects).decode("utf-8")


def test_single_build_page_lists_files_with_links_and_sizes():
    html = _render([Project("Syncthing", [_bt("S_Linux", "Linux", "Syncthing", [_file("s.tar.gz")])])])

    assert "<title>Latest builds of main</title>" in html
    assert "Latest builds of <code>main</code>" in html
    assert '<h2 id="Syncthing">Syncthing</h2>' in html
    assert f'<a href="{BASE}/guestAuth/artifacts/s.tar.gz">s.tar.gz</a> (1.43 MiB)' in html
    assert f'<a href="{BASE}/viewLog.html?buildId=1">#42</a>' in html
    assert "Status: Tests passed: 10" in html
    assert "Completed: 2017-04-12 08:10:10 UTC" in html
    # Only one configuration in the project, so no configuration heading.
    assert "<h4>" not in html


def test_configuration_heading_only_with_several_visible_builds():
    proj = Project("Syncthing", [
        _bt("S_Linux", "Linux", "Syncthing", [_file("l.tar.gz")]),
        _bt("S_Mac", "Mac", "Syncthing", [_file("m.zip")]),
    ])
    html = _render([proj])
    assert "<h4>Linux</h4>" in html
    assert "<h4>Mac</h4>" in html
    assert html.index("l.tar.gz") < html.index("m.zip")


def test_builds_and_projects_without_files_are_hidden():
    projects = [
        Project("Empty", [_bt("E_Linux", "Linux", "Empty")]),
        Project("No Builds", []),
        Project("Syncthing", [
            _bt("S_Linux", "Linux", "Syncthing", [_file("l.tar.gz")]),
            _bt("S_Docs", "Docs", "Syncthing"),
        ]),
    ]
    html = _render(projects)
    assert "Empty" not in html
    assert "No Builds" not in html
    assert "Docs" not in html
    # The hidden build does not count towards the configuration heading.
    assert "<h4>" not in html
    # A single visible project gets no separator before it.
    assert "<hr/>" not in html


def test_projects_are_separated():
    projects = [
        Project("Alpha Project", [_bt("A", "Linux", "Alpha Project", [_file("a")])]),
        Project("Beta", [_bt("B", "Linux", "Beta", [_file("b")])]),
    ]
    html = _render(projects)
    assert html.count("<hr/>") == 1
    assert '<h2 id="Alpha-Project">Alpha Project</h2>' in html


def test_custom_title():
    html = _render([], title="Nightlies")
    assert "<title>Nightlies</title>" in html
    assert "<h1>Nightlies</h1>" in html
    assert "Latest builds of" not in html


def test_untrusted_text_is_escaped():
    html = _render([Project("<script>", [_bt("X", "Linux", "<script>", [_file("a&b.zip", size=512)])])])
    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert "a&amp;b.zip</a> (0.5 KiB)" in html


def test_placeholder_page():
    html = PageRenderer(branch="main", base_url=BASE).render_placeholder().decode("utf-8")
    assert "The build list is being collected" in html
    assert "<h2" not in html


def test_regular_page_has_no_placeholder_note():
    assert "being collected" not in _render([])


def test_base_url_trailing_slash_is_trimmed():
    renderer = PageRenderer(branch="main", base_url=BASE + "/")
    html = renderer.render([Project("S", [_bt("S_L", "Linux", "S", [_file("x")])])]).decode("utf-8")
    assert f'href="{BASE}/guestAuth/artifacts/x"' in html


def test_custom_template_file(tmp_path):
    tpl = tmp_path / "mine.j2"
    tpl.write_text("{{ branch }}:{% for p in projects %}{{ p.name }};{% endfor %}", encoding="utf-8")
    renderer = PageRenderer(branch="release", base_url=BASE, template_path=tpl)
    projects = [Project("A", [_bt("A_L", "Linux", "A", [_file("x")])]), Project("B", [])]
    assert renderer.render(projects) == b"release:A;"


def test_missing_template_is_a_config_error(tmp_path):
    with pytest.raises(ConfigError):
        PageRenderer(branch="main", base_url=BASE, template_path=tmp_path / "nope.j2")


def test_broken_template_is_a_config_error(tmp_path):
    tpl = tmp_path / "broken.j2"
    tpl.write_text("{% for %}", encoding="utf-8")
    with pytest.raises(ConfigError):
        PageRenderer(branch="main", base_url=BASE, template_path=tpl)
