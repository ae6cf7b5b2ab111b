import pytest

from py842.cl2c import cl_to_c, main


def test_worked_example_escapes():
    assert cl_to_c('a"b\\c\nd', "X") == 'const char *X =\n"a\\"b\\\\c\\n"\n"d"\n;\n'


def test_empty_source():
    assert cl_to_c("", "V") == 'const char *V =\n""\n;\n'


@pytest.mark.parametrize("text", ["kernel void f() {}", "x\ny\n", 'say "hi"\\'])
def test_output_frame_and_line_count(text):
    out = cl_to_c(text, "NAME")
    assert out.startswith('const char *NAME =\n"')
    assert out.endswith('"\n;\n')
    # each source newline adds exactly one line to the body
    assert out.count("\n") == text.count("\n") + 3


def test_plain_text_passes_through():
    out = cl_to_c("__kernel void k(int a)", "K")
    assert "__kernel void k(int a)" in out


def test_main_writes_file(tmp_path):
    src = tmp_path / "in.cl"
    dst = tmp_path / "out.c"
    content = 'int x = 1;\nchar *s = "q\\n";\n'
    src.write_text(content)
    assert main([str(src), str(dst), "SOURCE"]) == 0
    assert dst.read_text() == cl_to_c(content, "SOURCE")


def test_main_preserves_bytes(tmp_path):
    src = tmp_path / "in.cl"
    dst = tmp_path / "out.c"
    src.write_bytes(b"\xe2\x80\x94\r")
    assert main([str(src), str(dst), "V"]) == 0
    assert dst.read_bytes() == b'const char *V =\n"\xe2\x80\x94\r"\n;\n'


def test_main_usage(capsys):
    assert main(["only-one"]) == 1
    assert "Usage: cl2c input.cl output.h variable_name" in capsys.readouterr().out


def test_main_missing_input(tmp_path):
    assert main([str(tmp_path / "missing.cl"), str(tmp_path / "o.c"), "V"]) == 1