"""
Tests for skill loading and the activate_skill tool.
"""

import textwrap

import pytest

from loopagent.skills import SkillManager, load_skills_from_dir, parse_skill_file
from loopagent.tools.skill import ACTIVATE_SKILL_TOOL_NAME, create_activate_skill_tool


def write_skill(root, name: str, description: str = "Does things", body: str = "Step 1.") -> None:
    skill = root / name
    skill.mkdir(parents=True)
    (skill / "SKILL.md").write_text(
        textwrap.dedent(
            f"""\
            ---
            name: {name}
            description: {description}
            ---
            {body}
            """
        )
    )


class TestSkillLoader:
    def test_parse(self, tmp_path):
        skill = parse_skill_file(
            "---\nname: pdf\ndescription: Work with PDFs\n---\n\n# PDF\nUse pdftotext.\n",
            tmp_path / "pdf" / "SKILL.md",
        )

        assert skill.name == "pdf"
        assert skill.instructions == "# PDF\nUse pdftotext."
        assert skill.base_dir == (tmp_path / "pdf").resolve()

    def test_missing_description(self, tmp_path):
        with pytest.raises(ValueError, match="description"):
            parse_skill_file("---\nname: pdf\n---\nbody", tmp_path / "SKILL.md")

    def test_load_dir_skips_invalid(self, tmp_path):
        write_skill(tmp_path, "alpha")
        write_skill(tmp_path, "beta")
        (tmp_path / "broken").mkdir()
        (tmp_path / "broken" / "SKILL.md").write_text("no frontmatter")
        (tmp_path / "empty").mkdir()

        skills = load_skills_from_dir(tmp_path)

        assert [s.name for s in skills] == ["alpha", "beta"]

    def test_load_dir_skips_malformed_yaml(self, tmp_path):
        write_skill(tmp_path, "ok")
        (tmp_path / "bad").mkdir()
        (tmp_path / "bad" / "SKILL.md").write_text("---\nname: [unclosed\ndescription: x\n---\nbody\n")

        skills = load_skills_from_dir(tmp_path)

        assert [s.name for s in skills] == ["ok"]

    def test_malformed_yaml_is_a_value_error(self, tmp_path):
        with pytest.raises(ValueError, match="malformed frontmatter"):
            parse_skill_file("---\nname: [unclosed\n---\nbody", tmp_path / "SKILL.md")

    def test_missing_dir(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_skills_from_dir(tmp_path / "nope")


class TestSkillManager:
    def test_later_skills_override(self, tmp_path):
        write_skill(tmp_path / "a", "pdf", description="first")
        write_skill(tmp_path / "b", "pdf", description="second")
        manager = SkillManager()

        manager.add_skills(load_skills_from_dir(tmp_path / "a"))
        manager.add_skills(load_skills_from_dir(tmp_path / "b"))

        assert len(manager.get_skills()) == 1
        assert manager.get_skill("pdf").description == "second"

    def test_metadata_section(self, tmp_path):
        manager = SkillManager()
        assert manager.build_skill_metadata_section() == "No skills available."

        write_skill(tmp_path, "pdf", description="Work with PDFs")
        manager.add_skills(load_skills_from_dir(tmp_path))
        assert manager.build_skill_metadata_section() == "- **pdf**: Work with PDFs"


class TestActivateSkillTool:
    @pytest.fixture
    def manager(self, tmp_path):
        write_skill(tmp_path, "pdf", body="Use pdftotext.")
        (tmp_path / "pdf" / "scripts").mkdir()
        (tmp_path / "pdf" / "scripts" / "extract.sh").write_text("echo")
        manager = SkillManager()
        manager.add_skills(load_skills_from_dir(tmp_path))
        return manager

    def test_schema_lists_skills(self, manager):
        tool = create_activate_skill_tool(manager)

        assert tool.name == ACTIVATE_SKILL_TOOL_NAME
        assert tool.parameters["properties"]["name"]["enum"] == ["pdf"]
        assert "- **pdf**" in tool.description

    @pytest.mark.asyncio
    async def test_activation(self, manager):
        result = await create_activate_skill_tool(manager).run({"name": "pdf"})

        assert result.error is None
        assert result.llm_content.startswith('<activated_skill name="pdf">')
        assert "Use pdftotext." in result.llm_content
        assert "scripts/extract.sh" in result.llm_content
        assert "SKILL.md" not in result.llm_content

    @pytest.mark.asyncio
    async def test_unknown_skill(self, manager):
        result = await create_activate_skill_tool(manager).run({"name": "docx"})

        assert result.error == 'Skill "docx" not found. Available skills: pdf'
