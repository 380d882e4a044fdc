from labkit.exercises_cli import main


def test_check_prints_message(capsys):
    assert main(["-student-id", "abc", "check"]) == 0
    assert capsys.readouterr().out == "Would check stuff\n"


def test_no_command_prints_usage(capsys):
    assert main(["--student-id", "abc"]) == 1
    assert "exercises-cli <generate|check>" in capsys.readouterr().err


def test_too_many_commands(capsys):
    assert main(["-student-id", "abc", "check", "generate"]) == 1
    assert "exercises-cli <generate|check>" in capsys.readouterr().err


def test_unknown_command(capsys):
    assert main(["-student-id", "abc", "frobnicate"]) == 1
    assert "exercises-cli <generate|check>" in capsys.readouterr().err


def test_placeholder_student_id_fails(monkeypatch, capsys):
    monkeypatch.setenv("STUDENT_ID", "please set student id")
    assert main(["check"]) == 1
    assert capsys.readouterr().out == ""


def test_generate_writes_files(monkeypatch, tmp_path):
    (tmp_path / "exercise.yaml").write_text(
        "name: demo\ninput:\n  - greeting: hello\n", encoding="utf-8"
    )
    (tmp_path / ".README.md").write_text("Say {{ greeting }}\n", encoding="utf-8")
    (tmp_path / ".exercise_test.go").write_text("// {{ greeting }}\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    assert main(["-student-id", "x1", "-verbose", "generate"]) == 0
    assert (tmp_path / "README.md").read_text(encoding="utf-8") == "Say hello\n"
    assert (tmp_path / "exercise_test.go").read_text(encoding="utf-8") == "// hello\n"


def test_generate_without_definition_fails(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    assert main(["-student-id", "x1", "generate"]) == 1
    assert not (tmp_path / "README.md").exists()