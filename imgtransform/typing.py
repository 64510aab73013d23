import dataclasses
from typing import NewType, TypedDict

ObjectKey = NewType('ObjectKey', str)
ContentType = NewType('ContentType', str)


@dataclasses.dataclass(eq=True, frozen=True)
class Size:
  width: int
  height: int

  @property
  def pixels(self) -> int:
    return self.width * self.height

  def __str__(self) -> str:
    return f'{self.width}x{self.height}'


class ErrorBody(TypedDict):
  error: str
