import logging
import os
import shutil
import subprocess

import pytest

import kalipsoc

SAMPLE = "x = 5\ny = 10\nresult = x + y\nprint result\n"


class FakeRun:
    """Stands in for subprocess.run and records the command line."""

    def __init__(self, returncode=0, stderr=""):
        self.returncode = returncode
        self.stderr = stderr
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(cmd)
        return subprocess.CompletedProcess(cmd, self.returncode, stdout="", stderr=self.stderr)


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "prog.kpso"
    path.write_text(SAMPLE)
    return path


@pytest.mark.parametrize("src,plat,expected", [
    ("prog.kpso", "Linux", ("prog.c", "prog")),
    ("dir/prog.kpso", "Darwin", ("dir/prog.c", "dir/prog")),
    ("prog.kpso", "Windows", ("prog.c", "prog.exe")),
    ("prog.txt", "Linux", ("prog.txt.c", "prog.txt")),
    ("prog", "Linux", ("prog.c", "prog")),
])
def test_output_paths(src, plat, expected):
    assert kalipsoc.output_paths(src, plat) == expected


def test_usage_errors(capsys):
    assert kalipsoc.main([]) == 1
    assert kalipsoc.main(["a.kpso", "b.kpso"]) == 1
    assert "usage:" in capsys.readouterr().err


def test_missing_input(tmp_path, capsys):
    assert kalipsoc.main([str(tmp_path / "nope.kpso")]) == 1
    assert "Failed to open input file" in capsys.readouterr().err


def test_translation_error_writes_nothing(tmp_path, monkeypatch, capsys):
    fake = FakeRun()
    monkeypatch.setattr(subprocess, "run", fake)
    bad = tmp_path / "bad.kpso"
    bad.write_text("x = 1\nfoo bar\n")
    assert kalipsoc.main([str(bad)]) == 1
    assert "Invalid statement" in capsys.readouterr().err
    assert not (tmp_path / "bad.c").exists()
    assert fake.calls == []


def test_successful_build(source, monkeypatch):
    fake = FakeRun()
    monkeypatch.setattr(subprocess, "run", fake)
    monkeypatch.setattr(kalipsoc.platform, "system", lambda: "Linux")
    assert kalipsoc.main([str(source), "--cc", "cc"]) == 0
    c_path = str(source)[:-len(".kpso")] + ".c"
    assert fake.calls == [["cc", c_path, "-o", c_path[:-2]]]
    text = open(c_path).read()
    assert "    long long v0 = 0, v1 = 0, v2 = 0;\n" in text
    assert text.endswith("    return 0;\n}\n")


def test_cc_from_environment(source, monkeypatch):
    fake = FakeRun()
    monkeypatch.setattr(subprocess, "run", fake)
    monkeypatch.setenv("KALIPSO_CC", "clang")
    assert kalipsoc.main([str(source)]) == 0
    assert fake.calls[0][0] == "clang"


def test_emit_only_skips_backend(source, monkeypatch):
    fake = FakeRun()
    monkeypatch.setattr(subprocess, "run", fake)
    assert kalipsoc.main(["-S", str(source)]) == 0
    assert fake.calls == []
    assert os.path.exists(str(source)[:-len(".kpso")] + ".c")


def test_backend_failure_is_distinct(source, monkeypatch):
    monkeypatch.setattr(subprocess, "run", FakeRun(returncode=1, stderr="prog.c:4: error"))
    assert kalipsoc.main([str(source)]) == kalipsoc.EXIT_BUILD_FAILED


def test_missing_compiler(source):
    assert kalipsoc.main([str(source), "--cc", "definitely-not-a-compiler-xyz"]) == kalipsoc.EXIT_BUILD_FAILED


def test_build_executable_raises(monkeypatch):
    monkeypatch.setattr(subprocess, "run", FakeRun(returncode=1, stderr="boom"))
    with pytest.raises(kalipsoc.BuildError) as exc:
        kalipsoc.build_executable("a.c", "a")
    assert exc.value.stderr == "boom"


@pytest.mark.skipif(shutil.which("gcc") is None, reason="gcc not installed")
def test_sample_program_prints_15(source):
    assert kalipsoc.main([str(source)]) == 0
    exe = str(source)[:-len(".kpso")]
    out = subprocess.run([exe], capture_output=True, text=True, check=True)
    assert out.stdout == "15\n"


@pytest.mark.skipif(shutil.which("gcc") is None, reason="gcc not installed")
def test_input_program_runs(tmp_path):
    path = tmp_path / "echo.kpso"
    path.write_text("# doubles its input\ninput n\nm = n * 2\nprint m + 1\n")
    assert kalipsoc.main([str(path)]) == 0
    out = subprocess.run([str(tmp_path / "echo")], input="20\n", capture_output=True, text=True, check=True)
    assert out.stdout == "41\n"


@pytest.mark.skipif(shutil.which("gcc") is None, reason="gcc not installed")
def test_print_two_values_fails_in_backend(tmp_path):
    path = tmp_path / "two.kpso"
    path.write_text("a = 1\nb = 2\nprint a b\n")
    assert kalipsoc.main([str(path)]) == kalipsoc.EXIT_BUILD_FAILED


def test_non_utf8_input(tmp_path, capsys):
    bad = tmp_path / "latin.kpso"
    bad.write_bytes(b"x = 5\nprint \xff\n")
    assert kalipsoc.main(["-S", str(bad)]) == 1
    assert "Failed to open input file" in capsys.readouterr().err
    assert not (tmp_path / "latin.c").exists()


def test_progress_goes_to_stdout(source, monkeypatch, capsys):
    monkeypatch.setattr(subprocess, "run", FakeRun())
    assert kalipsoc.main([str(source)]) == 0
    captured = capsys.readouterr()
    assert "Generated C code:" in captured.out
    assert "Success! Created executable:" in captured.out
    assert "Run with:" in captured.out
    assert captured.err == ""


def test_build_failure_goes_to_stderr(source, monkeypatch, capsys):
    monkeypatch.setattr(subprocess, "run", FakeRun(returncode=1, stderr="prog.c:4: error"))
    assert kalipsoc.main([str(source)]) == kalipsoc.EXIT_BUILD_FAILED
    captured = capsys.readouterr()
    assert "Compilation failed!" in captured.err
    assert "prog.c:4: error" in captured.err
    assert "Compilation failed!" not in captured.out


def test_messages_are_not_repeated_by_root_logger(source, monkeypatch):
    seen = []

    class Collect(logging.Handler):
        def emit(self, record):
            seen.append(record.getMessage())

    root_handler = Collect()
    logging.getLogger().addHandler(root_handler)
    try:
        assert kalipsoc.main(["-S", str(source)]) == 0
    finally:
        logging.getLogger().removeHandler(root_handler)
    assert seen == []
    assert logging.getLogger("kalipso").propagate is False
