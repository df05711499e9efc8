import json
import os

import pytest

from tshost.config import BuildConfig, CompilerOptions, find_config_file, load_loader_options, parse_query, read_config_file, resolve_build_config
from tshost.exceptions import ConfigurationError, ErrorCode

# --- Fixtures ---


@pytest.fixture
def create_files(tmp_path):
    """A factory fixture to create a temporary project tree."""

    def _create_files(file_dict):
        for file_path, content in file_dict.items():
            path = tmp_path / file_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content if isinstance(content, str) else json.dumps(content))
        return tmp_path

    return _create_files


# --- 1. Query Parsing ---


@pytest.mark.parametrize(
    "query, expected",
    [
        ("", {}),
        ('?{"configFile": "tsconfig.build.json"}', {"configFile": "tsconfig.build.json"}),
        ("?a=1&b&c=false", {"a": "1", "b": True, "c": False}),
        ("?-sourceMap&+declaration", {"sourceMap": False, "declaration": True}),
        ("?x[]=1&x[]=2", {"x": ["1", "2"]}),
        ("?configFile=src%2Ftsconfig.json", {"configFile": "src/tsconfig.json"}),
    ],
)
def test_parse_query(query, expected):
    assert parse_query(query) == expected


def test_parse_query_rejects_malformed_json():
    with pytest.raises(ConfigurationError) as e:
        parse_query('?{"configFile": ')
    assert e.value.code == ErrorCode.INVALID_QUERY


def test_loader_options_accept_both_spellings():
    options, errors = load_loader_options('?{"configFile": "a.json", "compilerOptions": {"target": "es2015"}, "compiler": "x.y"}')

    assert errors == []
    assert options.config_file == "a.json"
    assert options.compiler_options == {"target": "es2015"}
    assert options.compiler == "x.y"


def test_bad_loader_options_are_reported_not_raised():
    options, errors = load_loader_options('?{"compilerOptions": 3}')

    assert options.compiler_options == {}
    assert [e.code for e in errors] == [ErrorCode.INVALID_LOADER_OPTION]


# --- 2. Compiler Options ---


def test_compiler_option_defaults():
    options = CompilerOptions()

    assert (options.target, options.module, options.source_map, options.declaration) == ("es5", "commonjs", False, False)
    assert options.is_es5_or_lower


def test_compiler_options_are_case_insensitive():
    options = CompilerOptions(target="ES2015", module="ESNext")

    assert options.target == "es2015"
    assert options.module == "esnext"
    assert not options.is_es5_or_lower


# --- 3. Configuration Files ---


def test_precedence_defaults_file_overrides_forced(create_files):
    """defaults < tsconfig.json < overrides < the request's source map setting."""
    root = create_files(
        {
            "tsconfig.json": {
                "compilerOptions": {"target": "es2015", "module": "esnext", "sourceMap": True, "declaration": True},
                "files": ["src/a.ts"],
            }
        }
    )

    parsed = read_config_file(str(root / "tsconfig.json"), source_map=False, overrides={"module": "commonjs"})

    assert parsed.errors == []
    assert parsed.options.target == "es2015"
    assert parsed.options.module == "commonjs"
    assert parsed.options.declaration is True
    assert parsed.options.source_map is False
    assert parsed.file_names == [os.path.join(str(root), "src", "a.ts")]


def test_overrides_cannot_force_the_source_map(create_files):
    root = create_files({"tsconfig.json": {}})

    parsed = read_config_file(str(root / "tsconfig.json"), source_map=True, overrides={"source_map": False})

    assert parsed.options.source_map is True


def test_no_config_file_gives_defaults():
    parsed = read_config_file(None)

    assert parsed.errors == []
    assert parsed.options == CompilerOptions()
    assert parsed.file_names == []


def test_unknown_option_is_reported_and_dropped(create_files):
    root = create_files({"tsconfig.json": {"compilerOptions": {"strictness": "max", "target": "es2017"}}})

    parsed = read_config_file(str(root / "tsconfig.json"))

    assert [e.code for e in parsed.errors] == [ErrorCode.UNKNOWN_COMPILER_OPTION]
    assert "strictness" in str(parsed.errors[0])
    assert parsed.options.target == "es2017"


def test_invalid_option_falls_back_to_its_default(create_files):
    root = create_files({"tsconfig.json": {"compilerOptions": {"target": "es1", "module": "esnext"}}})

    parsed = read_config_file(str(root / "tsconfig.json"))

    assert [e.code for e in parsed.errors] == [ErrorCode.INVALID_COMPILER_OPTION]
    assert parsed.options.target == "es5"
    assert parsed.options.module == "esnext"


@pytest.mark.parametrize(
    "content, code",
    [
        ("{ not json", ErrorCode.CONFIG_FILE_INVALID_JSON),
        ("[1, 2]", ErrorCode.CONFIG_FILE_NOT_AN_OBJECT),
        ('{"files": "a.ts"}', ErrorCode.CONFIG_FILES_NOT_A_LIST),
    ],
)
def test_broken_config_files_are_reported(create_files, content, code):
    root = create_files({"tsconfig.json": content})

    parsed = read_config_file(str(root / "tsconfig.json"))

    assert [e.code for e in parsed.errors] == [code]
    assert parsed.options == CompilerOptions()


def test_unreadable_config_file_is_reported(tmp_path):
    parsed = read_config_file(str(tmp_path / "tsconfig.json"))

    assert [e.code for e in parsed.errors] == [ErrorCode.CONFIG_FILE_UNREADABLE]


# --- 4. Discovery ---


def test_find_config_file_walks_upward(create_files):
    root = create_files({"tsconfig.json": {}, "src/deep/a.ts": ""})

    assert find_config_file(str(root / "src" / "deep")) == str(root / "tsconfig.json")


def test_resolve_build_config_discovers_from_the_resource(create_files):
    root = create_files({"tsconfig.json": {"compilerOptions": {"declaration": True}}, "src/a.ts": ""})
    build_config = BuildConfig(context=str(root), resource_path=str(root / "src" / "a.ts"), source_map=True)

    loader_options, parsed = resolve_build_config(build_config)

    assert loader_options.config_file is None
    assert parsed.config_file == str(root / "tsconfig.json")
    assert parsed.options.declaration is True
    assert parsed.options.source_map is True


def test_resolve_build_config_honours_an_explicit_config_file(create_files):
    root = create_files({"tsconfig.json": {}, "configs/build.json": {"compilerOptions": {"target": "esnext"}}, "src/a.ts": ""})
    build_config = BuildConfig(
        context=str(root),
        resource_path=str(root / "src" / "a.ts"),
        query='?{"configFile": "configs/build.json", "compilerOptions": {"module": "es2015"}}',
    )

    _, parsed = resolve_build_config(build_config)

    assert parsed.config_file == str(root / "configs" / "build.json")
    assert parsed.options.target == "esnext"
    assert parsed.options.module == "es2015"


def test_query_errors_come_first(create_files):
    root = create_files({"tsconfig.json": {"compilerOptions": {"bogus": 1}}, "a.ts": ""})
    build_config = BuildConfig(context=str(root), resource_path=str(root / "a.ts"), query='?{"compilerOptions": 1}')

    _, parsed = resolve_build_config(build_config)

    assert [e.code for e in parsed.errors] == [ErrorCode.INVALID_LOADER_OPTION, ErrorCode.UNKNOWN_COMPILER_OPTION]
