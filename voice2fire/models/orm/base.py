from sqlalchemy.orm import declarative_base


class CustomBase:
    def __repr__(self) -> str:
        columns = ", ".join(
            f"{c.name}={getattr(self, c.name)!r}" for c in self.__table__.columns
        )
        return f"{self.__class__.__name__}({columns})"


def enum_values(members):
    """Stores enum columns by value ("paid") instead of by member name ("PAID")."""
    return [m.value for m in members]


Base = declarative_base(cls=CustomBase)
