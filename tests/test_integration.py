"""
Integration tests for agentsync.

End-to-end runs through the CLI against a real directory tree, no mocks.
"""

import os

import pytest

from agentsync.cli import main
from tests.conftest import read_file, write_config, write_file


def snapshot(directory):
    """Map every file under ``directory`` to its content."""
    files = {}
    for root, _, names in os.walk(directory):
        for name in names:
            path = os.path.join(root, name)
            files[os.path.relpath(path, directory)] = read_file(path)
    return files


@pytest.mark.integration
class TestIntegration:
    """Integration tests that verify actual functionality."""

    def test_interpolation_conditionals_and_loops(self, temp_dir):
        write_file(os.path.join(temp_dir, "AGENTS_TEMPLATE.md"),
                   "Hello {{ USER }} from {{ AGENT_NAME }}\n"
                   '{% if AGENT_NAME == "Claude" %}CLAUDE{% endif %}\n'
                   "{% for i in range(1, 4) %}{{ i }}{% endfor %}\n")
        config_path = write_config(temp_dir, {
            "template_path": "AGENTS_TEMPLATE.md",
            "targets": [
                {"agent": "claude", "path": "out-claude.md",
                 "variables": {"AGENT_NAME": "Claude", "USER": "User"}},
                {"agent": "codex", "path": "out-codex.md",
                 "variables": {"AGENT_NAME": "Codex", "USER": "User"}},
            ],
        })

        assert main(["sync", "--config", config_path]) == 0

        out_claude = read_file(os.path.join(temp_dir, "out-claude.md"))
        assert "Hello User from Claude" in out_claude
        assert "CLAUDE" in out_claude
        assert "123" in out_claude

        out_codex = read_file(os.path.join(temp_dir, "out-codex.md"))
        assert "Hello User from Codex" in out_codex
        assert "Claude" not in out_codex
        assert "CLAUDE" not in out_codex
        assert "123" in out_codex

    def test_includes_resolved_from_config_directory(self, temp_dir):
        write_file(os.path.join(temp_dir, "snippet.md"), "Included: {{ USER }}")
        write_file(os.path.join(temp_dir, "templates", "AGENTS_TEMPLATE.md"),
                   'Start\n{% include "snippet.md" %}\nEnd\n')
        config_path = write_config(temp_dir, {
            "template_path": "templates/AGENTS_TEMPLATE.md",
            "targets": [{"agent": "x", "path": "out.md", "variables": {"USER": "User"}}],
        })

        assert main(["sync", "--config", config_path]) == 0
        assert read_file(os.path.join(temp_dir, "out.md")) == "Start\nIncluded: User\nEnd\n"

    def test_idempotent_sync(self, basic_project, capsys):
        assert main(["sync", "--config", basic_project["config"]]) == 0
        before = snapshot(basic_project["dir"])
        capsys.readouterr()

        assert main(["sync", "--config", basic_project["config"]]) == 0

        assert snapshot(basic_project["dir"]) == before
        assert all(" ok: " in line for line in capsys.readouterr().out.splitlines())

    def test_check_then_sync_applies_the_one_pending_write(self, basic_project, capsys):
        main(["sync", "--config", basic_project["config"]])
        os.remove(basic_project["codex"])
        before = snapshot(basic_project["dir"])
        capsys.readouterr()

        assert main(["check", "--config", basic_project["config"]]) == 1
        assert snapshot(basic_project["dir"]) == before
        assert capsys.readouterr().out.splitlines() == [
            f"[claude] ok: {basic_project['claude']}",
            f"[codex] would update: {basic_project['codex']}",
        ]

        assert main(["sync", "--config", basic_project["config"]]) == 0
        after = snapshot(basic_project["dir"])
        assert set(after) - set(before) == {os.path.join("nested", "AGENTS.md")}
        assert {k: v for k, v in after.items() if k in before} == before
        assert capsys.readouterr().out.splitlines() == [
            f"[claude] ok: {basic_project['claude']}",
            f"[codex] updated: {basic_project['codex']}",
        ]

        assert main(["check", "--config", basic_project["config"]]) == 0

    @pytest.mark.parametrize("command", ["sync", "dry-run", "check"])
    def test_overwrite_refusal_is_absolute(self, command, basic_project, capsys):
        write_config(basic_project["dir"], {
            "template_path": "AGENTS_TEMPLATE.md",
            "options": {"overwrite": False},
            "targets": [{"agent": "claude", "path": "CLAUDE.md"}],
        })
        write_file(basic_project["claude"], "hand edited\n")
        before = snapshot(basic_project["dir"])

        assert main([command, "--config", basic_project["config"]]) == 1

        assert "Refusing to overwrite" in capsys.readouterr().err
        assert snapshot(basic_project["dir"]) == before

    def test_backup_chain_via_cli(self, temp_dir):
        template = write_file(os.path.join(temp_dir, "AGENTS_TEMPLATE.md"), "v1\n")
        dest = write_file(os.path.join(temp_dir, "out.md"), "v0\n")
        config_path = write_config(temp_dir, {
            "template_path": "AGENTS_TEMPLATE.md",
            "targets": [{"agent": "x", "path": "out.md"}],
        })

        assert main(["sync", "--config", config_path]) == 0
        write_file(template, "v2\n")
        assert main(["sync", "--config", config_path]) == 0
        write_file(template, "v3\n")
        assert main(["sync", "--config", config_path]) == 0

        assert read_file(dest) == "v3\n"
        assert read_file(dest + ".bak") == "v0\n"
        assert read_file(dest + ".bak.1") == "v1\n"
        assert read_file(dest + ".bak.2") == "v2\n"

    def test_agent_name_override_in_output(self, temp_dir):
        write_file(os.path.join(temp_dir, "AGENTS_TEMPLATE.md"), "I am {{ AGENT_NAME }}\n")
        config_path = write_config(temp_dir, {
            "template_path": "AGENTS_TEMPLATE.md",
            "targets": [
                {"agent": "claude", "path": "a.md", "variables": {"AGENT_NAME": "Claude"}},
                {"agent": "codex", "path": "b.md"},
            ],
        })

        assert main(["sync", "--config", config_path]) == 0
        assert read_file(os.path.join(temp_dir, "a.md")) == "I am Claude\n"
        assert read_file(os.path.join(temp_dir, "b.md")) == "I am codex\n"

    def test_env_and_tilde_destinations(self, temp_dir, monkeypatch):
        home = os.path.join(temp_dir, "home")
        monkeypatch.setenv("HOME", home)
        monkeypatch.setenv("AGENTSYNC_PROJECT", os.path.join(temp_dir, "project"))
        write_file(os.path.join(temp_dir, "AGENTS_TEMPLATE.md"), "x\n")
        config_path = write_config(temp_dir, {
            "template_path": "AGENTS_TEMPLATE.md",
            "targets": [
                {"agent": "home", "path": "~/.claude/CLAUDE.md"},
                {"agent": "env", "path": "${AGENTSYNC_PROJECT}/AGENTS.md"},
            ],
        })

        assert main(["sync", "--config", config_path]) == 0
        assert read_file(os.path.join(home, ".claude", "CLAUDE.md")) == "x\n"
        assert read_file(os.path.join(temp_dir, "project", "AGENTS.md")) == "x\n"
