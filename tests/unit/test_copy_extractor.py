import pytest

from dockdeps.PARSERS.dockerfile_parser import DockerfileParser
from dockdeps.RESOLVERS.copy_extractor import copied_files
from dockdeps.errors import DefinitionError


def copied(content):
    return copied_files(DockerfileParser().parse_from_string(content))


def test_one_group_per_instruction():
    assert copied("COPY a b /dst/\nADD c /dst/\n") == [["a", "b"], ["c"]]


def test_destination_is_excluded():
    assert copied("COPY only-source /dst") == [["only-source"]]


def test_multi_stage_copy_has_no_dependencies():
    content = """
    FROM golang AS build
    COPY main.go /src/
    FROM alpine
    COPY --from=build /bin/app /app
    """
    assert copied(content) == [["main.go"]]


def test_from_flag_drops_every_source():
    assert copied("COPY --from=0 a b c /dst/") == []


def test_remote_sources_are_skipped():
    content = "ADD https://example.com/app.tgz local.txt /dst/\nADD http://example.com/x /dst/\n"
    assert copied(content) == [["local.txt"]]


def test_env_is_applied():
    content = 'ENV DIR=src FILE="main.py"\nCOPY $DIR/$FILE /app/\n'
    assert copied(content) == [["src/main.py"]]


def test_legacy_env_is_applied():
    assert copied("ENV CONF config.yaml\nCOPY ${CONF} /etc/\n") == [["config.yaml"]]


def test_env_only_applies_afterwards():
    assert copied("COPY $DIR /a\nENV DIR=src\nCOPY $DIR /b\n") == [[""], ["src"]]


def test_env_values_see_earlier_env():
    assert copied("ENV BASE=/opt\nENV APP=${BASE}/app\nCOPY $APP/run.sh /\n") == [["/opt/app/run.sh"]]


def test_inline_comment_ends_sources():
    # "b" is the destination; everything from "#" on is a comment
    assert copied("COPY a b # copy things") == [["a"]]


def test_quoted_sources():
    assert copied("COPY 'my$file' /dst") == [["my$file"]]


def test_json_form():
    assert copied('COPY ["with space.txt", "/dst/"]') == [["with space.txt"]]


def test_malformed_source_word():
    with pytest.raises(DefinitionError, match="extraction: processing word"):
        copied('COPY "unterminated /dst')
