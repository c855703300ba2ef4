import textwrap
from types import SimpleNamespace

from argocd_compliance.adapters import ManifestParser, RenderOptions, Renderer
from argocd_compliance.adapters.renderer import OUTPUT_LIMIT, cache_key, trim_output
from argocd_compliance.config import LintConfig, PathOverride, RuleSetting


def make_document(path: str, helm: str = "", file_path: str = "apps/demo.yaml"):
    text = textwrap.dedent(
        f"""
        apiVersion: argoproj.io/v1alpha1
        kind: Application
        metadata:
          name: demo
        spec:
          source:
            repoURL: https://github.com/org/repo.git
            path: {path}
        """
    )
    if helm:
        text += textwrap.indent(textwrap.dedent(helm), "    ")
    (document,) = ManifestParser().parse_text(text, file_path)
    return document


def make_chart(root, name="chart"):
    chart = root / name
    chart.mkdir()
    (chart / "Chart.yaml").write_text("name: demo\n", encoding="utf-8")
    return chart


def test_helm_command_and_success(monkeypatch, tmp_path):
    chart = make_chart(tmp_path)
    document = make_document(
        "chart",
        helm="""
        helm:
          releaseName: payments
          valueFiles: [values-prod.yaml]
          parameters:
            - name: image.tag
              value: "1.2.3"
        """,
    )
    calls = []

    def fake_run(command, cwd, capture_output, text):
        calls.append((command, cwd))
        return SimpleNamespace(returncode=0, stdout="kind: Deployment", stderr="")

    monkeypatch.setattr("argocd_compliance.adapters.renderer.subprocess.run", fake_run)
    renderer = Renderer(LintConfig(), RenderOptions(repo_root=str(tmp_path)))

    assert renderer.render(document) == []
    assert calls == [
        (
            [
                "helm",
                "template",
                "payments",
                ".",
                "--values",
                str(chart / "values-prod.yaml"),
                "--set",
                "image.tag=1.2.3",
            ],
            chart,
        )
    ]


def test_helm_failure_becomes_finding(monkeypatch, tmp_path):
    chart = make_chart(tmp_path)
    document = make_document("chart")

    def fake_run(command, cwd, capture_output, text):
        assert command[2] == "argocd-compliance-render"
        return SimpleNamespace(returncode=1, stdout="", stderr="Error: template: bad\n")

    monkeypatch.setattr("argocd_compliance.adapters.renderer.subprocess.run", fake_run)

    (finding,) = Renderer(LintConfig(), RenderOptions(repo_root=str(tmp_path))).render(document)

    assert finding.rule_id == "RENDER_HELM"
    assert finding.message == f"helm template failed in {chart}: exit status 1: Error: template: bad"
    assert finding.file_path == "apps/demo.yaml"


def test_kustomize_missing_binary(monkeypatch, tmp_path):
    overlay = tmp_path / "overlays" / "prod"
    overlay.mkdir(parents=True)
    (overlay / "kustomization.yaml").write_text("resources: []\n", encoding="utf-8")
    document = make_document("overlays/prod")

    def fake_run(command, cwd, capture_output, text):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr("argocd_compliance.adapters.renderer.subprocess.run", fake_run)
    renderer = Renderer(LintConfig(), RenderOptions(kustomize_binary="kz", repo_root=str(tmp_path)))

    (finding,) = renderer.render(document)

    assert finding.rule_id == "RENDER_KUSTOMIZE"
    assert finding.message.endswith("executable not found: kz")


def test_unresolvable_paths_are_skipped(monkeypatch, tmp_path):
    def fake_run(*args, **kwargs):
        raise AssertionError("no command expected")

    monkeypatch.setattr("argocd_compliance.adapters.renderer.subprocess.run", fake_run)

    assert Renderer(LintConfig(), RenderOptions(repo_root=str(tmp_path))).render(make_document("missing")) == []


def test_cache_reuses_result_but_keeps_file_paths(monkeypatch, tmp_path):
    make_chart(tmp_path)
    calls = []

    def fake_run(command, cwd, capture_output, text):
        calls.append(command)
        return SimpleNamespace(returncode=2, stdout="boom", stderr="")

    monkeypatch.setattr("argocd_compliance.adapters.renderer.subprocess.run", fake_run)
    renderer = Renderer(LintConfig(), RenderOptions(repo_root=str(tmp_path), cache=True))

    first = renderer.render(make_document("chart", file_path="apps/a.yaml"))
    second = renderer.render(make_document("chart", file_path="apps/b.yaml"))

    assert len(calls) == 1
    assert first[0].message == second[0].message
    assert [first[0].file_path, second[0].file_path] == ["apps/a.yaml", "apps/b.yaml"]


def test_disabled_render_rule_skips_command(monkeypatch, tmp_path):
    make_chart(tmp_path)
    config = LintConfig(overrides=(PathOverride(pattern="apps/*", rules={"RENDER_HELM": RuleSetting(enabled=False)}),))

    def fake_run(*args, **kwargs):
        raise AssertionError("disabled rule must not render")

    monkeypatch.setattr("argocd_compliance.adapters.renderer.subprocess.run", fake_run)

    assert Renderer(config, RenderOptions(repo_root=str(tmp_path))).render(make_document("chart")) == []


def test_trim_output_and_cache_key():
    assert trim_output("  short \n") == "short"
    assert trim_output("x" * (OUTPUT_LIMIT + 10)).endswith("...")
    assert cache_key("helm", "/a", {"b": 1, "a": 2}) == cache_key("helm", "/a", {"a": 2, "b": 1})
    assert cache_key("helm", "/a", {}) != cache_key("kustomize", "/a", {})
