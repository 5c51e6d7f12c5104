import pytest
from sqlalchemy import literal_column

from recordkit import QueryBuilder


def compiled(builder):
    return " ".join(str(builder.to_select()).split())


class TestQueryComposition:
    """SQL produced by the builder, without touching a database."""

    def test_defaults_to_table_star(self):
        assert compiled(QueryBuilder(None, 'post')) == 'SELECT post.* FROM post'

    def test_reserved_table_name_is_quoted(self):
        sql = compiled(QueryBuilder(None, 'user'))
        assert sql == 'SELECT "user".* FROM "user"'

    def test_aliases_and_dotted_columns_are_labelled(self):
        builder = QueryBuilder(None, 'user').select(['user.name', 'post.title as post_title', 'user.*'])
        sql = compiled(builder)
        assert '"user".name AS name' in sql
        assert 'post.title AS post_title' in sql
        assert '"user".*' in sql

    def test_expressions_are_kept_verbatim(self):
        sql = compiled(QueryBuilder(None, 'post').select(['count(post.id) as total']))
        assert sql.startswith('SELECT count(post.id) AS total')

    def test_joins_are_rendered_in_order(self):
        builder = (
            QueryBuilder(None, 'user')
            .join_raw('JOIN post ON post.id = user.post_id')
            .left_join('order', 'order.user_id', 'user.id')
        )
        assert compiled(builder).endswith(
            'FROM "user" JOIN post ON post.id = user.post_id LEFT JOIN "order" ON "order".user_id = "user".id'
        )

    def test_where_forms(self):
        builder = (
            QueryBuilder(None, 'user')
            .where('user.id', 1)
            .where('user.age', '>', 18)
            .where('user.deleted_at', None)
            .where(literal_column('user.name') != 'x')
            .where_in('user.post_id', [1, 2])
            .where_raw('length(user.name) > :size', size=2)
        )
        sql = compiled(builder)
        assert '"user".id = :' in sql
        assert '"user".age > :' in sql
        assert '"user".deleted_at IS NULL' in sql
        assert 'user.name != :' in sql
        assert '"user".post_id IN' in sql
        assert 'length(user.name) > :size' in sql

    def test_where_mapping(self):
        sql = compiled(QueryBuilder(None, 'user').where({'user.id': 1, 'user.name': 'John'}))
        assert '"user".id = :' in sql
        assert 'AND "user".name = :' in sql

    def test_where_target_cannot_inject_sql(self):
        sql = compiled(QueryBuilder(None, 'post').where('id = 1 OR 1', 1).where('a"b', 2))
        assert '"id = 1 OR 1" = :' in sql
        assert '"a""b" = :' in sql

    def test_where_rejects_bare_string(self):
        with pytest.raises(TypeError):
            QueryBuilder(None, 'user').where('user.id')


class TestQueryExecution:
    """Terminal coroutines against the seeded SQLite database."""

    def test_execute_and_first(self, run):
        async def scenario(conn):
            rows = await conn('user').select(['name']).execute()
            first = await conn('user').where('name', 'Nobody').first()
            return rows, first
        rows, first = run(scenario)
        assert rows == [{'name': 'John'}]
        assert first is None

    def test_insert_returns_generated_id(self, run):
        async def scenario(conn):
            ids = await conn('post').insert({'title': 'Second'}, returning='id')
            return ids, await conn('post').count()
        ids, count = run(scenario)
        assert ids == [2]
        assert count == 2

    def test_update_and_delete_row_counts(self, run):
        async def scenario(conn):
            updated = await conn('user').where('id', 1).update({'name': 'Johnny'})
            missed = await conn('user').where('id', 99).update({'name': 'Ghost'})
            name = (await conn('user').where('id', 1).first())['name']
            deleted = await conn('user').where('id', 1).delete()
            return updated, missed, name, deleted
        assert run(scenario) == (1, 0, 'Johnny', 1)

    def test_count_with_filter(self, run):
        async def scenario(conn):
            return await conn('user').where('name', 'John').count('id')
        assert run(scenario) == 1

    def test_reserved_word_table(self, run):
        async def scenario(conn):
            ids = await conn('order').insert({'name': 'first'}, returning='id')
            row = await conn('order').where('order.id', ids[0]).first()
            return row, await conn('order').count('name')
        row, count = run(scenario)
        assert row == {'id': 1, 'name': 'first'}
        assert count == 1
