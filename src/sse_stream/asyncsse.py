"""一条 SSE 记录（两个空行之间的文本）到 Message 的解析"""

from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Message:
    event: str | None = None
    data: str = ""
    id: str | None = None
    retry: int | None = None  # 毫秒

    @property
    def type(self) -> str:
        return self.event if self.event is not None else "message"

    @property
    def has_retry(self) -> bool:
        return self.retry is not None

    @property
    def has_id(self) -> bool:
        return self.id is not None

    def __str__(self):
        return f"SSE: {self.event}: {self.data}"


def parse_sse_message(record: str, logger: logging.Logger = logger) -> Message:
    event = id_ = retry = None
    data: list[str] = []
    for line in record.split("\n"):
        if ":" not in line:
            if line.strip():
                logger.warning("couldn't parse line: %r", line)
            continue
        field, value = line.split(":", 1)
        field = field.strip()
        value = value.strip()

        if field == "":
            # 注释行
            continue
        elif field == "data":
            data.append(value)  # 多行 data 用 \n 拼接
        elif field == "event":
            event = value
        elif field == "id":
            id_ = value
        elif field == "retry":
            # 只认 ASCII 数字，"+5"、"5_000"、"-1" 都算格式错误
            if not (value.isascii() and value.isdigit()):
                logger.warning("ignore malformed retry value: %r", value)
                continue
            retry = int(value)

    return Message(event=event, data="\n".join(data), id=id_, retry=retry)
