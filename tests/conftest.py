import argparse
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import glgen  # noqa: E402

REGISTRY_TEXT = """\
#ifndef __gl_glcorearb_h_
#define __gl_glcorearb_h_ 1

#ifndef APIENTRY
#define APIENTRY
#endif
#ifndef APIENTRYP
#define APIENTRYP APIENTRY *
#endif
#ifndef GLAPI
#define GLAPI extern
#endif

#ifndef GL_VERSION_1_0
#define GL_VERSION_1_0 1
typedef void (APIENTRYP PFNGLCLEARPROC) (GLbitfield mask);
#ifdef GL_GLEXT_PROTOTYPES
GLAPI void APIENTRY glClear (GLbitfield mask);
GLAPI void APIENTRY glGetIntegerv (GLenum pname, GLint *data);
GLAPI const GLubyte *APIENTRY glGetString (GLenum name);
GLAPI void APIENTRY glDrawArrays (GLenum mode, GLint first, GLsizei count);
#endif
#endif /* GL_VERSION_1_0 */
#define GL_DEPTH_BUFFER_BIT               0x00000100
#define GL_COLOR_BUFFER_BIT               0x00004000
#define GL_TRIANGLES                      0x0004
#define GL_MAJOR_VERSION                  0x821B
#define GL_MINOR_VERSION                  0x821C
GLAPI void *APIENTRY glMapBuffer (GLenum target, GLenum access);
"""

SOURCE_TEXT = """\
#include "opengl.generated.h"

int main(void)
{
    OpenGLVersion Version;
    OpenGLInit(&Version);
    glClear(GL_COLOR_BUFFER_BIT);
    glfwSwapBuffers(window);
    return 0;
}
"""


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    def _write_file(name: str, text: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write_file


@pytest.fixture
def registry_file(write_file: Callable[[str, str], Path]) -> Path:
    return write_file("glcorearb.h", REGISTRY_TEXT)


@pytest.fixture
def source_file(write_file: Callable[[str, str], Path]) -> Path:
    return write_file("main.c", SOURCE_TEXT)


@pytest.fixture
def registry() -> glgen.Registry:
    return glgen.parse_registry(REGISTRY_TEXT)


@pytest.fixture
def make_config(
    tmp_path: Path, registry_file: Path, source_file: Path
) -> Callable[..., glgen.GenerateConfig]:
    def _make_config(**overrides: object) -> glgen.GenerateConfig:
        base: dict[str, object] = {
            "registry_files": (registry_file,),
            "output": tmp_path / "out" / "opengl.generated.h",
            "inputs": (source_file,),
            "ignores": (),
            "prefix": "",
            "boilerplate": True,
            "silent": True,
            "force": True,
        }
        base.update(overrides)
        return glgen.GenerateConfig(**base)

    return _make_config


@pytest.fixture
def make_args() -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "inputs": [Path("main.c")],
            "registry": ["glcorearb.h"],
            "output": Path("opengl.generated.h"),
            "prefix": "",
            "ignore": None,
            "no_boilerplate": False,
            "force": False,
            "silent": False,
            "platform": "all",
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args
