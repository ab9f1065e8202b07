from .experience import Experience, Ingestion, Location, DoseRecord, ExperienceNotFound
from .substance import SubstanceDataContent, SubstanceRecord, Timing, DosageRoute
