import pytest

from recordkit import EqualityJoin, FormatError, RawJoin, coerce_join


class TestCoerceJoin:
    """Normalisation of configured join entries."""

    def test_string_is_raw(self):
        assert coerce_join('JOIN post ON post.id = user.post_id') == RawJoin('JOIN post ON post.id = user.post_id')

    def test_mapping_is_equality(self):
        entry = {'table': 'post', 'first': 'post.id', 'second': 'user.post_id'}
        assert coerce_join(entry) == EqualityJoin('post', 'post.id', 'user.post_id')

    def test_variants_pass_through(self):
        join = EqualityJoin('post', 'post.id', 'user.post_id')
        assert coerce_join(join) is join

    @pytest.mark.parametrize('entry', [
        None,
        42,
        ['post', 'post.id', 'user.post_id'],
        {'table': 'post', 'first': 'post.id'},
        {'table': '', 'first': 'post.id', 'second': 'user.post_id'},
    ])
    def test_rejects_other_shapes(self, entry):
        with pytest.raises(FormatError, match='Unrecognized join format'):
            coerce_join(entry)
