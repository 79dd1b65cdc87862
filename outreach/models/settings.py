"""Operator settings and system key/value flags."""

from sqlmodel import Field, Session, SQLModel

SETTINGS_ROW_ID = 1


class OutreachSettings(SQLModel, table=True):
    """Single-row operator settings consulted by executors."""

    __tablename__ = "outreach_settings"

    id: int = Field(default=SETTINGS_ROW_ID, primary_key=True)
    sender_name: str = Field(default="", max_length=100)
    sender_email: str = Field(default="", max_length=255)
    service_offering: str = Field(default="", max_length=500)
    value_prop: str = Field(default="", max_length=500)
    daily_send_limit: int = Field(default=50)
    warmup_enabled: bool = Field(default=False)
    warmup_day_count: int = Field(default=1)
    inbox_polling_enabled: bool = Field(default=False)


class SystemFlag(SQLModel, table=True):
    """Key/value marker, e.g. the last date a daily job ran."""

    __tablename__ = "system_flags"

    key: str = Field(primary_key=True, max_length=100)
    value: str = Field(max_length=255)


def load_settings(session: Session) -> OutreachSettings:
    """Return the settings row, falling back to defaults when none is stored."""
    settings = session.get(OutreachSettings, SETTINGS_ROW_ID)
    return settings if settings is not None else OutreachSettings()


def get_flag(session: Session, key: str) -> str | None:
    flag = session.get(SystemFlag, key)
    return flag.value if flag is not None else None


def set_flag(session: Session, key: str, value: str) -> None:
    flag = session.get(SystemFlag, key)
    if flag is None:
        flag = SystemFlag(key=key, value=value)
    else:
        flag.value = value
    session.add(flag)
