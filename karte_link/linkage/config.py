"""Configuration constants for the karte-link analytics engine."""

import os
from pathlib import Path

# Base paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("KARTE_LINK_DATA_DIR", str(BASE_DIR / "data")))
SNAPSHOT_DIR = DATA_DIR / "snapshot"
LOG_DIR = Path(os.getenv("KARTE_LINK_LOG_DIR", str(BASE_DIR / "logs")))

# Logging configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_SESSIONS_DIR = LOG_DIR / "sessions"

# =============================================================================
# Snapshot Storage Configuration
# =============================================================================

# Browser localStorage holds roughly 5 MiB per origin; the file store mirrors it
STORAGE_QUOTA_BYTES = int(os.getenv("KARTE_LINK_STORAGE_QUOTA_BYTES", str(5 * 1024 * 1024)))

STORAGE_KEY_VISITS = "clinic-analytics/karte-records/v1"
STORAGE_KEY_VISITS_UPDATED = "clinic-analytics/karte-last-updated/v1"
STORAGE_KEY_RESERVATIONS = "clinic-analytics/reservations/v1"
STORAGE_KEY_RESERVATIONS_UPDATED = "clinic-analytics/last-updated/v1"
STORAGE_KEY_RESERVATIONS_DIFF = "clinic-analytics/reservations-diff/v1"
STORAGE_KEY_DIAGNOSES = "clinic-analytics/diagnosis/v1"
STORAGE_KEY_DIAGNOSES_UPDATED = "clinic-analytics/diagnosis-updated/v1"
STORAGE_KEY_LISTINGS = "clinic-analytics/listing/v1"
STORAGE_KEY_LISTINGS_UPDATED = "clinic-analytics/listing-updated/v1"
STORAGE_KEY_SURVEYS = "clinic-analytics/survey/v1"
STORAGE_KEY_SURVEYS_UPDATED = "clinic-analytics/survey-updated/v1"

# Families whose payload is zlib-compressed before it is written
COMPRESSED_STORAGE_KEYS = {STORAGE_KEY_VISITS}

# Month windows tried, in order, when the full visit set exceeds the quota
QUOTA_RETENTION_MONTHS = (18, 12, 9, 6, 3)

# =============================================================================
# Record Families
# =============================================================================

FAMILY_VISITS = "visits"
FAMILY_RESERVATIONS = "reservations"
FAMILY_DIAGNOSES = "diagnoses"
FAMILY_LISTINGS = "listings"
FAMILY_SURVEYS = "surveys"

RECORD_FAMILIES = (
    FAMILY_VISITS,
    FAMILY_RESERVATIONS,
    FAMILY_DIAGNOSES,
    FAMILY_LISTINGS,
    FAMILY_SURVEYS,
)

FAMILY_STORAGE_KEYS = {
    FAMILY_VISITS: (STORAGE_KEY_VISITS, STORAGE_KEY_VISITS_UPDATED),
    FAMILY_RESERVATIONS: (STORAGE_KEY_RESERVATIONS, STORAGE_KEY_RESERVATIONS_UPDATED),
    FAMILY_DIAGNOSES: (STORAGE_KEY_DIAGNOSES, STORAGE_KEY_DIAGNOSES_UPDATED),
    FAMILY_LISTINGS: (STORAGE_KEY_LISTINGS, STORAGE_KEY_LISTINGS_UPDATED),
    FAMILY_SURVEYS: (STORAGE_KEY_SURVEYS, STORAGE_KEY_SURVEYS_UPDATED),
}

# =============================================================================
# Diagnosis Categories
# =============================================================================

DIAGNOSIS_CATEGORY_LIFESTYLE = "lifestyle-disease"
DIAGNOSIS_CATEGORY_SURGERY = "surgery"
DIAGNOSIS_CATEGORY_DERMATOLOGY = "dermatology"
DIAGNOSIS_CATEGORY_OTHER = "other"

# Labels used by the diagnosis export itself
DIAGNOSIS_CATEGORY_ALIASES = {
    "生活習慣病": DIAGNOSIS_CATEGORY_LIFESTYLE,
    "外科": DIAGNOSIS_CATEGORY_SURGERY,
    "皮膚科": DIAGNOSIS_CATEGORY_DERMATOLOGY,
    "その他": DIAGNOSIS_CATEGORY_OTHER,
}

LIFESTYLE_DISEASE_KEYWORDS = (
    "高血圧", "糖尿病", "脂質異常", "高脂血症", "コレステロール", "ｺﾚｽﾃﾛｰﾙ",
    "高尿酸", "痛風", "肥満", "メタボ", "動脈硬化", "脂肪肝",
)

SURGERY_DISEASE_KEYWORDS = (
    "骨折", "捻挫", "打撲", "挫傷", "挫創", "裂創", "切創", "熱傷", "外傷",
    "腱鞘炎", "膝", "腰痛", "肩", "関節", "ヘルニア", "粉瘤", "異物",
)

DERMATOLOGY_DISEASE_KEYWORDS = (
    "湿疹", "皮膚炎", "蕁麻疹", "じんましん", "アトピー", "白癬", "水虫",
    "にきび", "ざ瘡", "疣贅", "いぼ", "帯状疱疹", "乾癬", "脱毛",
)

# Lifestyle disease types, matched on whitespace-stripped lowercase names
DISEASE_TYPE_HYPERTENSION = "hypertension"
DISEASE_TYPE_DIABETES = "diabetes"
DISEASE_TYPE_LIPID = "lipid"
DISEASE_TYPE_MULTIPLE = "multiple"

DISEASE_TYPE_KEYWORDS = {
    DISEASE_TYPE_HYPERTENSION: ("高血圧",),
    DISEASE_TYPE_DIABETES: ("糖尿病",),
    DISEASE_TYPE_LIPID: ("脂質異常", "ｺﾚｽﾃﾛｰﾙ", "コレステロール", "高脂血症"),
}

DISEASE_TYPE_LABELS = {
    DISEASE_TYPE_HYPERTENSION: "高血圧",
    DISEASE_TYPE_DIABETES: "糖尿病",
    DISEASE_TYPE_LIPID: "脂質異常症",
    DISEASE_TYPE_MULTIPLE: "複数疾患/その他",
}

DISEASE_TYPE_ORDER = (
    DISEASE_TYPE_HYPERTENSION,
    DISEASE_TYPE_DIABETES,
    DISEASE_TYPE_LIPID,
    DISEASE_TYPE_MULTIPLE,
)

UNMATCHED_DISEASE_LABEL = "その他"

# =============================================================================
# Continuity Status
# =============================================================================

STATUS_REGULAR = "regular"
STATUS_DELAYED = "delayed"
STATUS_AT_RISK = "atRisk"

STATUS_ORDER = (STATUS_REGULAR, STATUS_DELAYED, STATUS_AT_RISK)

REGULAR_MAX_DAYS = 90
DELAYED_MAX_DAYS = 150

ANONYMIZED_ID_PREFIX = "LS"
FIRST_VISIT_TYPE_LABEL = "初診"

# Ages outside [0, MAX_VALID_AGE) are treated as unknown
MAX_VALID_AGE = 130

# Follow-up lists keep this many patients, most recent last visit first
FOLLOW_UP_LIST_LIMIT = 30
HIGH_ENGAGEMENT_MIN_VISITS = 4

# =============================================================================
# Distribution Buckets (label, min, max); max None means open-ended
# =============================================================================

DAYS_SINCE_LAST_BUCKETS = (
    ("0-30日", 0, 30),
    ("31-60日", 31, 60),
    ("61-90日", 61, 90),
    ("91-120日", 91, 120),
    ("121-150日", 121, 150),
    ("151-180日", 151, 180),
    ("181-240日", 181, 240),
    ("241日以上", 241, None),
)

VISIT_COUNT_BUCKETS = (
    ("1-3回", 1, 3),
    ("4-6回", 4, 6),
    ("7-9回", 7, 9),
    ("10-12回", 10, 12),
    ("13回以上", 13, None),
)

COHORT_AGE_GROUPS = (
    ("20-39歳", 20, 39),
    ("40-49歳", 40, 49),
    ("50-59歳", 50, 59),
    ("60-69歳", 60, 69),
    ("70-79歳", 70, 79),
    ("80歳以上", 80, 150),
)

SLOT_AGE_BANDS = (
    ("0-19", 0, 19),
    ("20-39", 20, 39),
    ("40-59", 40, 59),
    ("60-79", 60, 79),
    ("80+", 80, None),
)
SLOT_AGE_UNKNOWN = "unknown"

# =============================================================================
# Calendar Configuration
# =============================================================================

HOLIDAY_WEEKDAY_INDEX = 7
WEEKDAY_LABELS = ("月", "火", "水", "木", "金", "土", "日", "祝日")

# Year-end and new-year closure counts as a holiday: Dec 27 through Jan 3
NEW_YEAR_PERIOD_START = (12, 27)
NEW_YEAR_PERIOD_END = (1, 3)

# Optional JSON list (or newline separated text) of extra holiday dates
HOLIDAYS_FILE = os.getenv("KARTE_LINK_HOLIDAYS_FILE")

# Country whose public holidays fill the holiday bucket; empty disables
HOLIDAY_COUNTRY = os.getenv("KARTE_LINK_HOLIDAY_COUNTRY", "JP")

# =============================================================================
# Department Classification
# =============================================================================

DEPARTMENT_LABEL_STRIP_PATTERN = r"[\s・●()（）【】\[\]\-]"

GENERAL_DEPARTMENT_NAMES = {"内科・外科外来（大岩医師）", "内科・外科外来"}
FEVER_DEPARTMENT_NAMES = {"発熱外来", "発熱・風邪症状外来", "風邪症状外来"}

DEPARTMENT_GENERAL = "総合診療"
DEPARTMENT_FEVER = "発熱外来"
DEPARTMENT_ONLINE_INSURED = "オンライン診療（保険）"
DEPARTMENT_ONLINE_PRIVATE = "オンライン診療（自費）"
DEPARTMENT_FOREIGN_PRIVATE = "外国人自費"
DEPARTMENT_INTERNAL = "内科"
DEPARTMENT_SURGERY = "外科"
DEPARTMENT_UNCLASSIFIED = "診療科未分類"

ONLINE_PRIVATE_KEYWORDS = ("自費", "自由診療", "aga", "ed")
FOREIGN_KEYWORDS = ("外国人", "外国", "海外", "foreign", "inbound")

SEGMENT_OVERALL = "overall"
SEGMENT_GENERAL = "general"
SEGMENT_FEVER = "fever"
SLOT_SEGMENTS = (SEGMENT_OVERALL, SEGMENT_GENERAL, SEGMENT_FEVER)

# Slot statistics
SLOT_MIN_PATIENTS_FOR_AVERAGE = 3
YEN_PER_POINT = 10

# =============================================================================
# API Configuration
# =============================================================================

API_HOST = os.getenv("KARTE_LINK_API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("KARTE_LINK_API_PORT", "8000"))
API_CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "KARTE_LINK_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    ).split(",")
    if origin.strip()
]

# Write per-run trace files under LOG_SESSIONS_DIR when the API starts
TRACE_SESSIONS = os.getenv("KARTE_LINK_TRACE", "").lower() in ("1", "true", "yes")
