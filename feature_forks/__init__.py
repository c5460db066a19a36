"""Feature forks: run each feature file of an acceptance suite in its own process."""

from .counters import SuiteCounters, SuiteTotals
from .errors import ConfigError, CounterStateError, FeatureForksError, FeatureParseError
from .models import FeatureFile, FeatureResult, RunOptions, SnippetStyle, WorkerInvocation, WorkSource
from .orchestrator import OrchestratorState, SuiteOrchestrator
