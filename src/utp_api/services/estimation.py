"""上传文件记录条数估算。

当前不解析表格内容，只返回 1-1000 之间的随机数作为占位值；
接入真实解析器时替换 ``estimate_record_count`` 即可，调用方签名不变。
"""

import random

from utp_api.services.uploads import FileDescriptor

MIN_ESTIMATED_RECORDS = 1
MAX_ESTIMATED_RECORDS = 1000


def estimate_record_count(descriptor: FileDescriptor) -> int:
    """估算文件记录条数（占位实现）。"""
    return random.randint(MIN_ESTIMATED_RECORDS, MAX_ESTIMATED_RECORDS)
