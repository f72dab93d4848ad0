import sqlalchemy as sqlalchemy
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy.orm import backref, relationship

from constants import (
    DEFAULT_PRIORITY,
    EXTERNAL_ID_MAX_LENGTH,
    TAG_NAME_MAX_LENGTH,
    TEST_SET_NAME_MAX_LENGTH,
)

from . import db

# tags association (plain tables)
test_set_tags = sqlalchemy.Table(
    "test_set_tags",
    db.Model.metadata,
    sqlalchemy.Column(
        "test_set_id",
        sqlalchemy.Integer,
        sqlalchemy.ForeignKey("test_sets.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sqlalchemy.Column(
        "tag_id",
        sqlalchemy.Integer,
        sqlalchemy.ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)

case_tags = sqlalchemy.Table(
    "case_tags",
    db.Model.metadata,
    sqlalchemy.Column(
        "case_id",
        sqlalchemy.Integer,
        sqlalchemy.ForeignKey("cases.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sqlalchemy.Column(
        "tag_id",
        sqlalchemy.Integer,
        sqlalchemy.ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)

# test areas <-> test sets, без порядка
test_set_test_areas = sqlalchemy.Table(
    "test_set_test_areas",
    db.Model.metadata,
    sqlalchemy.Column(
        "test_set_id",
        sqlalchemy.Integer,
        sqlalchemy.ForeignKey("test_sets.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sqlalchemy.Column(
        "test_area_id",
        sqlalchemy.Integer,
        sqlalchemy.ForeignKey("test_areas.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Project(db.Model):
    __tablename__ = "projects"

    id = sqlalchemy.Column(sqlalchemy.Integer, primary_key=True, autoincrement=True)
    name = sqlalchemy.Column(sqlalchemy.String(255), nullable=False)

    def __repr__(self):
        return f"<Project {self.id} {self.name}>"


class User(db.Model):
    __tablename__ = "users"

    id = sqlalchemy.Column(sqlalchemy.Integer, primary_key=True, autoincrement=True)
    login = sqlalchemy.Column(sqlalchemy.String(255), nullable=False, unique=True)
    name = sqlalchemy.Column(sqlalchemy.String(255), nullable=True)

    def __repr__(self):
        return f"<User {self.login}>"


class TestArea(db.Model):
    __tablename__ = "test_areas"
    __test__ = False

    id = sqlalchemy.Column(sqlalchemy.Integer, primary_key=True, autoincrement=True)
    project_id = sqlalchemy.Column(
        sqlalchemy.Integer,
        sqlalchemy.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = sqlalchemy.Column(sqlalchemy.String(255), nullable=False)

    def __repr__(self):
        return f"<TestArea {self.id} {self.name}>"


class Tag(db.Model):
    __tablename__ = "tags"

    id = sqlalchemy.Column(sqlalchemy.Integer, primary_key=True, autoincrement=True)
    name = sqlalchemy.Column(
        sqlalchemy.String(TAG_NAME_MAX_LENGTH), nullable=False, unique=True
    )

    def __repr__(self):
        return f"<Tag {self.name}>"


class Case(db.Model):
    __tablename__ = "cases"

    id = sqlalchemy.Column(sqlalchemy.Integer, primary_key=True, autoincrement=True)
    project_id = sqlalchemy.Column(
        sqlalchemy.Integer,
        sqlalchemy.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = sqlalchemy.Column(sqlalchemy.String(255), nullable=False)
    objective = sqlalchemy.Column(sqlalchemy.Text, nullable=True)
    date = sqlalchemy.Column(sqlalchemy.Date, nullable=True)
    priority = sqlalchemy.Column(
        sqlalchemy.Integer, nullable=False, default=DEFAULT_PRIORITY
    )
    # средняя длительность выполнения, секунды
    average_duration = sqlalchemy.Column(sqlalchemy.Integer, nullable=True)
    deleted = sqlalchemy.Column(sqlalchemy.Boolean, default=False, nullable=False)
    archived = sqlalchemy.Column(sqlalchemy.Boolean, default=False, nullable=False)

    tags = relationship(
        "Tag", secondary=case_tags, order_by="Tag.name", passive_deletes=True
    )

    def __repr__(self):
        return f"<Case {self.id} {self.title}>"


# association object (class) for TestSet <-> Case with position.
# Собственный id: один и тот же кейс может быть привязан к сету несколько раз
class TestSetCase(db.Model):
    __tablename__ = "test_set_cases"
    __test__ = False

    id = sqlalchemy.Column(sqlalchemy.Integer, primary_key=True, autoincrement=True)
    test_set_id = sqlalchemy.Column(
        sqlalchemy.Integer,
        sqlalchemy.ForeignKey("test_sets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    case_id = sqlalchemy.Column(
        sqlalchemy.Integer,
        sqlalchemy.ForeignKey("cases.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = sqlalchemy.Column(sqlalchemy.Integer, nullable=True)
    # версия сета, в которой кейс был добавлен
    test_set_version = sqlalchemy.Column(sqlalchemy.Integer, nullable=True)

    case = relationship(
        "Case",
        backref=backref(
            "test_set_links", cascade="all, delete-orphan", passive_deletes=True
        ),
    )

    def __repr__(self):
        return f"<TestSetCase set={self.test_set_id} case={self.case_id} pos={self.position}>"


class TestSet(db.Model):
    __tablename__ = "test_sets"
    __test__ = False

    id = sqlalchemy.Column(sqlalchemy.Integer, primary_key=True, autoincrement=True)
    name = sqlalchemy.Column(
        sqlalchemy.String(TEST_SET_NAME_MAX_LENGTH), nullable=False
    )
    project_id = sqlalchemy.Column(
        sqlalchemy.Integer,
        sqlalchemy.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date = sqlalchemy.Column(sqlalchemy.Date, nullable=False)
    external_id = sqlalchemy.Column(
        sqlalchemy.String(EXTERNAL_ID_MAX_LENGTH), nullable=True
    )
    priority = sqlalchemy.Column(
        sqlalchemy.Integer, nullable=False, default=DEFAULT_PRIORITY
    )
    deleted = sqlalchemy.Column(sqlalchemy.Boolean, default=False, nullable=False)
    archived = sqlalchemy.Column(sqlalchemy.Boolean, default=False, nullable=False)
    created_by = sqlalchemy.Column(
        sqlalchemy.Integer,
        sqlalchemy.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    updated_by = sqlalchemy.Column(
        sqlalchemy.Integer,
        sqlalchemy.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = sqlalchemy.Column(
        sqlalchemy.DateTime(timezone=True),
        server_default=sqlalchemy.func.now(),
        nullable=False,
    )
    updated_at = sqlalchemy.Column(
        sqlalchemy.DateTime(timezone=True),
        server_default=sqlalchemy.func.now(),
        onupdate=sqlalchemy.func.now(),
        nullable=False,
    )
    # счетчик оптимистичной блокировки, SQLAlchemy увеличивает его на каждый UPDATE
    version = sqlalchemy.Column(sqlalchemy.Integer, nullable=False)

    project = relationship("Project")
    creator = relationship("User", foreign_keys=[created_by])
    updater = relationship("User", foreign_keys=[updated_by])

    test_areas = relationship(
        "TestArea",
        secondary=test_set_test_areas,
        order_by="TestArea.id",
        passive_deletes=True,
    )

    case_links = relationship(
        "TestSetCase",
        backref="test_set",
        order_by="TestSetCase.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    cases = association_proxy("case_links", "case")

    tags = relationship(
        "Tag", secondary=test_set_tags, order_by="Tag.name", passive_deletes=True
    )

    versions = relationship(
        "TestSetVersion",
        backref="test_set",
        order_by="TestSetVersion.version",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        sqlalchemy.UniqueConstraint(
            "project_id", "external_id", name="uq_test_sets_project_external_id"
        ),
        sqlalchemy.Index("ix_test_sets_deleted_archived", "deleted", "archived"),
    )

    @property
    def case_ids(self):
        return [link.case_id for link in self.case_links]

    @property
    def test_area_ids(self):
        return [area.id for area in self.test_areas]

    def __repr__(self):
        return f"<TestSet {self.id} {self.name} v{self.version}>"


# История изменений тест сета: снимок полей на каждую версию
class TestSetVersion(db.Model):
    __tablename__ = "test_set_versions"
    __test__ = False

    id = sqlalchemy.Column(sqlalchemy.Integer, primary_key=True, autoincrement=True)
    test_set_id = sqlalchemy.Column(
        sqlalchemy.Integer,
        sqlalchemy.ForeignKey("test_sets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    version = sqlalchemy.Column(sqlalchemy.Integer, nullable=False)
    name = sqlalchemy.Column(sqlalchemy.String(TEST_SET_NAME_MAX_LENGTH), nullable=False)
    date = sqlalchemy.Column(sqlalchemy.Date, nullable=False)
    priority = sqlalchemy.Column(sqlalchemy.Integer, nullable=False)
    deleted = sqlalchemy.Column(sqlalchemy.Boolean, nullable=False)
    archived = sqlalchemy.Column(sqlalchemy.Boolean, nullable=False)
    updated_by = sqlalchemy.Column(sqlalchemy.Integer, nullable=True)
    created_at = sqlalchemy.Column(
        sqlalchemy.DateTime(timezone=True),
        server_default=sqlalchemy.func.now(),
        nullable=False,
    )

    __table_args__ = (
        sqlalchemy.UniqueConstraint(
            "test_set_id", "version", name="uq_test_set_versions_set_version"
        ),
    )

    def __repr__(self):
        return f"<TestSetVersion set={self.test_set_id} v{self.version}>"
