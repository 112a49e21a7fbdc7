import re
from pathlib import Path

import pytest

import glgen


def _scan(registry: glgen.Registry, text: str, ignores: tuple[str, ...] = ()) -> glgen.ScanResult:
    result = glgen.new_scan_result()
    return glgen.scan_source_text(text, registry, ignores, result)


def _typedef_names(content: str) -> list[str]:
    return re.findall(r"\(APIENTRYP (PFN\w+PROC)\)", content)


def test_sort_matched_orders_by_descending_hash() -> None:
    result = glgen.new_scan_result()
    result.macros.insert(
        "GL_COLOR_BUFFER_BIT", glgen.MatchedSymbol.from_name("GL_COLOR_BUFFER_BIT")
    )

    ordered = [symbol.name for symbol in glgen.sort_matched(result.macros)]

    # 0xFB08E2E7 > 0xCD38C975 > 0x550F607B
    assert ordered == ["GL_MINOR_VERSION", "GL_COLOR_BUFFER_BIT", "GL_MAJOR_VERSION"]


def test_sort_matched_breaks_hash_ties_by_name() -> None:
    table: glgen.SymbolTable[glgen.MatchedSymbol] = glgen.SymbolTable(
        8, hasher=lambda _name: 5
    )
    for name in ("glB", "glA"):
        table.insert(name, glgen.MatchedSymbol(name, 5))

    assert [s.name for s in glgen.sort_matched(table)] == ["glA", "glB"]


def test_proc_type_name_upper_cases_symbol() -> None:
    assert glgen.proc_type_name("glGetIntegerv") == "PFNGLGETINTEGERVPROC"


def test_format_function_typedef(registry: glgen.Registry) -> None:
    clear = registry.get("glClear")
    get_string = registry.get("glGetString")
    assert clear is not None and get_string is not None

    assert (
        glgen.format_function_typedef(clear)
        == "typedef void (APIENTRYP PFNGLCLEARPROC) (GLbitfield mask);"
    )
    assert (
        glgen.format_function_typedef(get_string)
        == "typedef const GLubyte * (APIENTRYP PFNGLGETSTRINGPROC) (GLenum name);"
    )


def test_format_macro_lines_skips_names_missing_from_registry(
    registry: glgen.Registry,
) -> None:
    symbols = [
        glgen.MatchedSymbol.from_name("GL_TRIANGLES"),
        glgen.MatchedSymbol.from_name("GL_VENDOR_HACK"),
    ]

    assert glgen.format_macro_lines(symbols, registry) == [
        "#define GL_TRIANGLES                      0x0004"
    ]


def test_redefinitions_and_function_pointers_use_proc_prefix(
    registry: glgen.Registry,
) -> None:
    symbols = [glgen.MatchedSymbol.from_name("glClear")]

    assert glgen.format_redefinitions(symbols, registry) == ["#define glClear GEN_glClear"]
    assert glgen.format_function_pointers(symbols, registry) == [
        "PFNGLCLEARPROC GEN_glClear;"
    ]


def test_loader_backend_render_substitutes_prefixes() -> None:
    lines = glgen.APPLE_LOADER.render("My")
    text = "\n".join(lines)

    assert "{p}" not in text and "{gp}" not in text
    assert "static void MyLoadOpenGL()" in lines
    assert "static void MyUnloadOpenGL()" in lines
    assert "static MyOpenGLProc MyOpenGLGetProc(const char *proc)" in lines
    assert "static CFBundleRef GEN_Bundle;" in lines
    assert "  CFRelease(GEN_BundleURL);" in lines


def test_loader_backends_cover_three_platform_families() -> None:
    assert list(glgen.LOADER_BACKENDS) == ["win32", "apple", "posix"]
    assert glgen.LOADER_BACKENDS["posix"].condition is None


def test_format_loader_section_all_chains_every_backend() -> None:
    lines = glgen.format_loader_section("")

    assert lines[0] == "typedef void (*OpenGLProc)(void);"
    win32 = lines.index("#ifdef _WIN32")
    apple = lines.index("#elif defined(__APPLE__) || defined(__APPLE_CC__)")
    posix = lines.index("#else")
    end = lines.index("#endif")
    assert win32 < apple < posix < end == len(lines) - 1
    assert '  OpenGLHandle = LoadLibraryA("opengl32.dll");' in lines[win32:apple]
    assert "  if (!Result)" in lines[win32:apple]
    assert '  OpenGLHandle = dlopen("libGL.so.1", RTLD_LAZY | RTLD_GLOBAL);' in lines[posix:end]


@pytest.mark.parametrize(
    ("platform", "present", "absent"),
    [
        ("win32", "wglGetProcAddress", "dlopen"),
        ("apple", "CFBundleGetFunctionPointerForName", "LoadLibraryA"),
        ("posix", "glXGetProcAddressARB", "CFBundleCreate"),
    ],
)
def test_format_loader_section_single_platform_has_no_conditionals(
    platform: str, present: str, absent: str
) -> None:
    text = "\n".join(glgen.format_loader_section("", platform))

    assert present in text
    assert absent not in text
    assert "#ifdef _WIN32" not in text
    assert "#endif" not in text


def test_format_init_function_resolves_each_function(registry: glgen.Registry) -> None:
    symbols = glgen.sort_matched(_scan(registry, "glClear();").functions)

    lines = glgen.format_init_function(symbols, registry, "My")

    assert lines[0] == "static void MyOpenGLInit(MyOpenGLVersion* Version)"
    assert "  MyLoadOpenGL();" in lines
    assert (
        '  GEN_glGetIntegerv = (PFNGLGETINTEGERVPROC)MyOpenGLGetProc("glGetIntegerv");'
        in lines
    )
    assert '  GEN_glClear = (PFNGLCLEARPROC)MyOpenGLGetProc("glClear");' in lines
    assert lines.index("  MyUnloadOpenGL();") > lines.index("  MyLoadOpenGL();")
    assert "    glGetIntegerv(GL_MAJOR_VERSION, &Version->Major);" in lines
    assert lines[-1] == "}"


def test_assemble_header_structure_with_boilerplate(registry: glgen.Registry) -> None:
    scan = _scan(registry, "glClear(GL_COLOR_BUFFER_BIT);")

    content = glgen.assemble_header(registry, scan, glgen.HeaderOptions(timestamp=42))
    lines = content.splitlines()

    assert lines[:5] == [
        "#ifndef INCLUDE_OPENGL_GENERATED_H",
        "#define INCLUDE_OPENGL_GENERATED_H",
        "",
        "// NOTE: This file is generated automatically. Do not edit.",
        "// @GENERATED: 42",
    ]
    assert content.endswith("\n#endif // INCLUDE_OPENGL_GENERATED_H\n")

    order = [
        "typedef struct OpenGLVersion",
        "typedef void GLvoid;",
        "#define GL_COLOR_BUFFER_BIT               0x00004000",
        glgen.DEBUG_PROC_TYPEDEF,
        "typedef void (APIENTRYP PFNGLCLEARPROC) (GLbitfield mask);",
        "#define glClear GEN_glClear",
        "PFNGLCLEARPROC GEN_glClear;",
        "typedef void (*OpenGLProc)(void);",
        "static void OpenGLInit(OpenGLVersion* Version)",
    ]
    positions = [lines.index(line) for line in order]
    assert positions == sorted(positions)


def test_assemble_header_orders_symbols_by_hash(registry: glgen.Registry) -> None:
    scan = _scan(registry, "glClear(); glDrawArrays(); glGetString();")

    content = glgen.assemble_header(registry, scan, glgen.HeaderOptions())

    expected = [
        glgen.proc_type_name(name)
        for name in sorted(
            ["glClear", "glDrawArrays", "glGetString", "glGetIntegerv"],
            key=lambda name: -glgen.symbol_hash(name),
        )
    ]
    assert _typedef_names(content) == expected


def test_assemble_header_without_boilerplate(registry: glgen.Registry) -> None:
    scan = _scan(registry, "glClear(GL_COLOR_BUFFER_BIT);")

    content = glgen.assemble_header(
        registry, scan, glgen.HeaderOptions(boilerplate=False)
    )

    assert "typedef void (APIENTRYP PFNGLCLEARPROC) (GLbitfield mask);" in content
    assert "#define GL_COLOR_BUFFER_BIT" in content
    assert "typedef unsigned int GLenum;" in content
    for absent in ("OpenGLVersion", "OpenGLInit", "GEN_", "LoadLibraryA", "dlopen"):
        assert absent not in content
    assert content.endswith("#endif // INCLUDE_OPENGL_GENERATED_H\n")


def test_assemble_header_skips_ignored_names(registry: glgen.Registry) -> None:
    scan = _scan(registry, "glDebugHook(); glClear();", ignores=("glDebugHook",))

    content = glgen.assemble_header(registry, scan, glgen.HeaderOptions())

    assert "glDebugHook" not in content
    assert "PFNGLCLEARPROC" in content


def test_assemble_header_applies_prefix(registry: glgen.Registry) -> None:
    content = glgen.assemble_header(
        registry, _scan(registry, ""), glgen.HeaderOptions(prefix="Gfx")
    )

    assert "} GfxOpenGLVersion;" in content
    assert "static void GfxOpenGLInit(GfxOpenGLVersion* Version);" in content
    assert "static void GfxLoadOpenGL()" in content
    assert "  GfxUnloadOpenGL();" in content


def test_write_header_creates_parent_and_reports_counts(tmp_path: Path) -> None:
    target = tmp_path / "include" / "gen" / "opengl.generated.h"

    result = glgen.write_header(target, "line one\nline two\n")

    assert target.read_text(encoding="utf-8") == "line one\nline two\n"
    assert result.path == target.resolve()
    assert result.line_count == 2
    assert result.byte_count == len("line one\nline two\n")
