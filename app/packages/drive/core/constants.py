"""常量定义：集中维护状态码与业务常量，避免魔法值散落各处。"""

from fastapi import status

HTTP_STATUS_OK = status.HTTP_200_OK
HTTP_STATUS_CREATED = status.HTTP_201_CREATED
HTTP_STATUS_BAD_REQUEST = status.HTTP_400_BAD_REQUEST
HTTP_STATUS_UNAUTHORIZED = status.HTTP_401_UNAUTHORIZED
HTTP_STATUS_FORBIDDEN = status.HTTP_403_FORBIDDEN
HTTP_STATUS_NOT_FOUND = status.HTTP_404_NOT_FOUND
HTTP_STATUS_CONFLICT = status.HTTP_409_CONFLICT
HTTP_STATUS_TOO_MANY_REQUESTS = status.HTTP_429_TOO_MANY_REQUESTS
HTTP_STATUS_INTERNAL_ERROR = status.HTTP_500_INTERNAL_SERVER_ERROR

ACCESS_TOKEN_TYPE = "bearer"

# 名称冲突检查等接口中代表根目录的占位值
ROOT_FOLDER_TOKEN = "root"

DEFAULT_FAVORITE_FOLDER_NAME = "默认收藏夹"

MAX_NAME_LENGTH = 255
SEARCH_RESULT_LIMIT = 100
RECENT_FILES_LIMIT = 10

INTERNAL_ERROR_MESSAGE = "服务器内部错误"

# 分享码/提取码
SHARE_CODE_LENGTH = 12
SHARE_CODE_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
EXTRACT_CODE_LENGTH = 4
EXTRACT_CODE_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
# 创建分享时 expiryDays 取该值表示永久有效
SHARE_NEVER_EXPIRES = -1
