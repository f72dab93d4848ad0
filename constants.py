import os

# Files
LOG_FILE_NAME = os.getenv("LOG_FILE_NAME", "logs.json")
MAX_LOG_LINES = 200

# PostgreSQL
DEFAULT_DATABASE_URL = "postgresql://testops:@db:5432/testops"
TESTING_DATABASE_URL = "sqlite://"

# Приоритеты: целое значение в БД -> отображаемое имя
PRIORITY_HIGH = 1
PRIORITY_NORMAL = 0
PRIORITY_LOW = -1
PRIORITY_NAMES = {
    PRIORITY_HIGH: "high",
    PRIORITY_NORMAL: "normal",
    PRIORITY_LOW: "low",
}
DEFAULT_PRIORITY = PRIORITY_NORMAL

# Теги
TAG_DELIMITER = ","
TAG_NAME_MAX_LENGTH = 100

# CSV экспорт
CSV_DELIMITER = ";"
CSV_LINE_FEED = "\r\n"
CSV_TEST_AREAS_JOINER = ", "
TEST_SET_CSV_HEADER = [
    "Test Set Id",
    "Name",
    "Date",
    "Priority",
    "Average duration",
    "Tags",
    "Test areas",
]
CASE_CSV_HEADER = [
    "Case Id",
    "Title",
    "Date",
    "Priority",
    "Average duration",
    "Objective",
    "Tags",
]

# Дерево (ExtJS list panel)
TREE_NODE_CLS_PREFIX = "x-listpanel-item priority_"

# Тест сеты
TEST_SET_NAME_MAX_LENGTH = 255
EXTERNAL_ID_MAX_LENGTH = 255
