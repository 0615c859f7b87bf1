from sqlalchemy import Column, Integer, String, UniqueConstraint
from kegtrack.models.base import Base


class CodeCounter(Base):
	__tablename__ = "code_counters"
	__table_args__ = (
		UniqueConstraint("prefix", name="uq_code_counters_prefix"),
	)

	id = Column(Integer, primary_key=True, index=True)
	# prefix: 'KEG' | 'CO2'
	prefix = Column(String(10), nullable=False, index=True)
	next_seq = Column(Integer, nullable=False, default=1)
