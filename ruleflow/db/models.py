# ruleflow/db/models.py
from sqlalchemy.orm import declarative_base
from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text, func

Base = declarative_base()


class LowcodeRule(Base):
    __tablename__ = "lowcode_rules"
    id = Column(String(64), primary_key=True)
    rule_key = Column(String(128), index=True)
    rule_name = Column(String(255))
    description = Column(Text, nullable=True)
    trigger_type = Column(String(64), index=True)
    trigger_config = Column(JSON, default=dict)
    conditions = Column(JSON, default=list)     # список или JSON-строка (так бывает в старых записях)
    actions = Column(JSON, default=list)
    is_active = Column(Boolean, default=True, index=True)
    priority = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class RuleExecution(Base):
    __tablename__ = "lowcode_rule_executions"
    id = Column(String(36), primary_key=True)
    rule_id = Column(String(64), index=True)
    triggered_by = Column(String(128), nullable=True)
    trigger_data = Column(JSON)
    input_data = Column(JSON)                   # копия trigger_data
    status = Column(String(16), index=True)     # running / skipped / success / failed
    output_data = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    execution_time_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), index=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True)
    user_id = Column(String(128), index=True)
    title = Column(String(255))
    message = Column(Text)
    severity = Column(String(16), default="info")
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(Integer, primary_key=True)
    action = Column(String(64), index=True)
    table_name = Column(String(64))
    new_data = Column(JSON)
    category = Column(String(32))
    severity = Column(String(16))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
