"""Unit tests for CommitBuilder."""

import hashlib
from typing import List

import pytest

from gitobj.storage.address import ObjectAddress, parse_address
from gitobj.storage.commit_builder import (
    CommitBuilder,
    CommitBuilderError,
    CommitFormatError,
    Signature,
    commit_payload_length,
    parse_commit,
    serialize_commit,
)
from gitobj.storage.framing import ObjectKind
from gitobj.storage.object_store import ObjectStore
from gitobj.storage.tree_codec import write_tree

EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


@pytest.fixture
def author() -> Signature:
    return Signature("Ada Lovelace", "ada@example.com", 1700000000, "+0100")


@pytest.fixture
def committer() -> Signature:
    return Signature("Charles Babbage", "charles@example.com", 1700000123, "-0530")


@pytest.fixture
def commit_builder(store: ObjectStore) -> CommitBuilder:
    """Create CommitBuilder instance."""
    return CommitBuilder(store)


@pytest.fixture
def empty_tree(store: ObjectStore) -> ObjectAddress:
    return write_tree(store, [])


class TestSignature:
    """Test author/committer lines."""

    def test_encode(self, author: Signature) -> None:
        assert author.encode() == b"Ada Lovelace <ada@example.com> 1700000000 +0100"

    def test_encoded_size(self, author: Signature) -> None:
        assert author.encoded_size == len(author.encode())

    def test_encoded_size_multibyte(self) -> None:
        signature = Signature("Zoë Müller", "zoë@example.com", 5, "+0000")
        assert signature.encoded_size == len(signature.encode())
        assert signature.encoded_size > len("Zoë Müller <zoë@example.com> 5 +0000")

    def test_decode(self, committer: Signature) -> None:
        assert Signature.decode(committer.encode()) == committer

    def test_decode_malformed(self) -> None:
        with pytest.raises(CommitFormatError):
            Signature.decode(b"no email here 12 +0000")

    @pytest.mark.parametrize("offset", ["0000", "+000", "UTC", "+00:00"])
    def test_bad_offset(self, offset: str) -> None:
        with pytest.raises(CommitBuilderError, match="offset"):
            Signature("a", "b", 0, offset)

    @pytest.mark.parametrize("name", ["a<b", "a>b", "a\nb"])
    def test_bad_name(self, name: str) -> None:
        with pytest.raises(CommitBuilderError):
            Signature(name, "x@y", 0)

    def test_negative_timestamp(self) -> None:
        with pytest.raises(CommitBuilderError):
            Signature("a", "b", -1)


class TestSerializeCommit:
    """Test the commit payload layout and its precomputed length."""

    def test_root_commit_layout(self, author: Signature, committer: Signature) -> None:
        tree = parse_address(EMPTY_TREE)
        payload = serialize_commit(tree, [], author, committer, "Initial commit")
        assert payload == (
            b"tree " + EMPTY_TREE.encode() + b"\n"
            b"author Ada Lovelace <ada@example.com> 1700000000 +0100\n"
            b"committer Charles Babbage <charles@example.com> 1700000123 -0530\n"
            b"\n"
            b"Initial commit\n"
        )

    def test_parent_lines_in_order(self, author: Signature) -> None:
        tree = parse_address(EMPTY_TREE)
        parents = [ObjectAddress.from_digest(bytes([i]) * 20) for i in (1, 2)]
        payload = serialize_commit(tree, parents, author, author, "merge")
        lines = payload.split(b"\n")
        assert lines[1] == b"parent " + b"01" * 20
        assert lines[2] == b"parent " + b"02" * 20
        assert lines[3].startswith(b"author ")

    @pytest.mark.parametrize("parent_count", [0, 1, 2, 5])
    @pytest.mark.parametrize(
        "message",
        ["", "short", "multi\nline\nmessage", "ünïcödé ✓", "trailing newline\n"],
    )
    def test_length_matches_serialization(
        self,
        author: Signature,
        committer: Signature,
        parent_count: int,
        message: str,
    ) -> None:
        """Test that the arithmetic length equals the real byte count."""
        tree = parse_address(EMPTY_TREE)
        parents: List[ObjectAddress] = [
            ObjectAddress.from_digest(bytes([i]) * 20) for i in range(parent_count)
        ]
        payload = serialize_commit(tree, parents, author, committer, message)
        assert commit_payload_length(tree, parents, author, committer, message) == len(payload)

    def test_message_gets_one_newline(self, author: Signature) -> None:
        payload = serialize_commit(parse_address(EMPTY_TREE), [], author, author, "msg\n")
        assert payload.endswith(b"\n\nmsg\n\n")


class TestParseCommit:
    """Test reading commit payloads back."""

    def test_round_trip(self, author: Signature, committer: Signature) -> None:
        tree = parse_address(EMPTY_TREE)
        parent = ObjectAddress.from_digest(b"\x07" * 20)
        commit = parse_commit(
            serialize_commit(tree, [parent], author, committer, "line one\nline two")
        )
        assert commit.tree == tree
        assert commit.parents == [parent]
        assert commit.author == author
        assert commit.committer == committer
        assert commit.message == "line one\nline two"

    def test_unknown_headers_skipped(self, author: Signature) -> None:
        payload = serialize_commit(parse_address(EMPTY_TREE), [], author, author, "m")
        headers, body = payload.split(b"\n\n", 1)
        payload = headers + b"\nencoding ISO-8859-1\ngpgsig -----BEGIN\n sig\n -----END\n\n" + body
        assert parse_commit(payload).message == "m"

    def test_missing_tree(self, author: Signature) -> None:
        with pytest.raises(CommitFormatError, match="missing"):
            parse_commit(b"author " + author.encode() + b"\ncommitter " + author.encode() + b"\n\nm\n")

    def test_missing_blank_line(self) -> None:
        with pytest.raises(CommitFormatError, match="blank line"):
            parse_commit(b"tree " + EMPTY_TREE.encode() + b"\n")

    def test_bad_tree_address(self, author: Signature) -> None:
        payload = b"tree xyz\nauthor " + author.encode() + b"\n\nm\n"
        with pytest.raises(CommitFormatError, match="Malformed"):
            parse_commit(payload)


class TestBuildCommit:
    """Test commit creation through the object store."""

    def test_build_root_commit(
        self,
        commit_builder: CommitBuilder,
        store: ObjectStore,
        empty_tree: ObjectAddress,
        author: Signature,
        committer: Signature,
    ) -> None:
        address = commit_builder.build_commit(empty_tree, [], author, committer, "Initial commit")

        kind, payload = store.read_object(address, verify_hash=True)
        assert kind is ObjectKind.COMMIT
        assert payload == serialize_commit(empty_tree, [], author, committer, "Initial commit")
        expected = hashlib.sha1(b"commit %d\0" % len(payload) + payload).hexdigest()
        assert address.hex == expected

    def test_header_length_matches_payload(
        self,
        commit_builder: CommitBuilder,
        store: ObjectStore,
        empty_tree: ObjectAddress,
        author: Signature,
    ) -> None:
        """Test that the declared length in the stored header is exact."""
        address = commit_builder.build_commit(empty_tree, [], author, message="héllo")
        with store.open_object(address) as stream:
            payload = stream.read()
            assert stream.size == len(payload)

    def test_committer_defaults_to_author(
        self,
        commit_builder: CommitBuilder,
        empty_tree: ObjectAddress,
        author: Signature,
    ) -> None:
        address = commit_builder.build_commit(empty_tree, [], author, message="m")
        commit = commit_builder.read_commit(address)
        assert commit.committer == author

    def test_commit_with_parent(
        self,
        commit_builder: CommitBuilder,
        empty_tree: ObjectAddress,
        author: Signature,
    ) -> None:
        root = commit_builder.build_commit(empty_tree, [], author, message="root")
        child = commit_builder.build_commit(empty_tree, [root.hex], author, message="child")
        assert commit_builder.read_commit(child).parents == [root]

    def test_same_input_same_address(
        self,
        commit_builder: CommitBuilder,
        empty_tree: ObjectAddress,
        author: Signature,
    ) -> None:
        first = commit_builder.build_commit(empty_tree, [], author, message="m")
        second = commit_builder.build_commit(empty_tree, [], author, message="m")
        assert first == second

    def test_missing_tree(self, commit_builder: CommitBuilder, author: Signature) -> None:
        with pytest.raises(CommitBuilderError, match="not found"):
            commit_builder.build_commit(EMPTY_TREE, [], author, message="m")

    def test_tree_of_wrong_kind(
        self,
        commit_builder: CommitBuilder,
        store: ObjectStore,
        author: Signature,
    ) -> None:
        blob = store.write_bytes(ObjectKind.BLOB, b"not a tree")
        with pytest.raises(CommitBuilderError, match="not a tree"):
            commit_builder.build_commit(blob, [], author, message="m")

    def test_parent_must_be_commit(
        self,
        commit_builder: CommitBuilder,
        empty_tree: ObjectAddress,
        author: Signature,
    ) -> None:
        with pytest.raises(CommitBuilderError, match="not a commit"):
            commit_builder.build_commit(empty_tree, [empty_tree], author, message="m")

    def test_invalid_address(self, commit_builder: CommitBuilder, author: Signature) -> None:
        with pytest.raises(CommitBuilderError, match="Not a valid object name"):
            commit_builder.build_commit("abc", [], author, message="m")

    def test_verify_disabled(self, commit_builder: CommitBuilder, author: Signature) -> None:
        address = commit_builder.build_commit(EMPTY_TREE, [], author, message="m", verify=False)
        assert commit_builder.read_commit(address).tree.hex == EMPTY_TREE

    def test_read_commit_wrong_kind(
        self,
        commit_builder: CommitBuilder,
        empty_tree: ObjectAddress,
    ) -> None:
        with pytest.raises(CommitBuilderError, match="not a commit"):
            commit_builder.read_commit(empty_tree)
