"""
Scoring-layer configuration: label order, severity tiers, report layout,
output paths, and the synthetic dataset vocabulary.
"""

from pathlib import Path

from src.engine.records import StanceLabel

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[2]

DATA_DIR = PROJECT_ROOT / "data"
GROUND_TRUTH_DIR = DATA_DIR / "ground_truth"
RESULTS_DIR = DATA_DIR / "results"

# Output file names written by the evaluation pipeline
JUDGMENTS_FILE = "judgments.csv"
CONFUSION_MATRIX_FILE = "confusion_matrix.csv"
CRITICAL_ERRORS_FILE = "critical_errors.csv"
REPORT_FILE = "evaluation_report.txt"

# ---------------------------------------------------------------------------
# Labels and severity
# ---------------------------------------------------------------------------

# Row/column order of the confusion matrix
LABEL_ORDER: tuple[str, ...] = StanceLabel.ALL

SEVERITY_HIGH = "high"      # Support ↔ Oppose reversal
SEVERITY_MEDIUM = "medium"  # polar label vs Neutral
SEVERITY_LOW = "low"        # anything involving Unknown

# Required columns of a ground-truth CSV
GROUND_TRUTH_COLUMNS: list[str] = ["comment_id", "text", "expected_label"]

# ---------------------------------------------------------------------------
# Report layout
# ---------------------------------------------------------------------------

REPORT_TOP_ERRORS: int = 5        # high-severity errors listed in full
REPORT_TEXT_EXCERPT: int = 80     # characters of comment text shown per error
MATRIX_LABEL_WIDTH: int = 12
MATRIX_CELL_WIDTH: int = 9

# ---------------------------------------------------------------------------
# Agreement statistics
# ---------------------------------------------------------------------------

CONFIDENCE_LEVEL: float = 0.95

# ---------------------------------------------------------------------------
# Synthetic dataset
# ---------------------------------------------------------------------------

MOCK_COMMENT_TEXTS: list[str] = [
    "This is amazing! Really helpful tutorial.",
    "Thank you so much for this explanation!",
    "Great content as always. Keep it up!",
    "This is okay but could be better explained.",
    "Not sure I understand this part...",
    "This is terrible. Complete waste of time.",
    "Why would anyone watch this? So boring.",
    "Meh, nothing special here.",
    "Oh wonderful, another basic tutorial. Very helpful indeed.",
    "Finally someone explains this properly!",
]

MOCK_VIDEO_TITLES: list[str] = [
    "Complete TypeScript Tutorial for Beginners",
    "Building a Modern Web App with Next.js",
    "Mastering React Hooks in 2024",
    "Docker Tutorial - From Zero to Hero",
    "Advanced CSS Techniques You Need to Know",
    "JavaScript Performance Optimization Tips",
]

MOCK_CHANNEL_NAMES: list[str] = [
    "Web Dev Mastery",
    "Code With Jane",
    "Tech Tutorials Pro",
    "Programming Wizard",
    "DevOps Guru",
    "Frontend Academy",
]

MOCK_PUBLISHED_AT = "2024-01-10T10:00:00Z"
MOCK_MAX_HOURS: int = 48   # comments are spread over this window after publication
MOCK_MAX_LIKES: int = 100
