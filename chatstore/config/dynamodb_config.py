from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class DynamoDBConfig(BaseSettings):
    """Settings for the DynamoDB table holding chats and their messages."""

    table_name: str = Field("ChatsTable", alias="CHATS_TABLE_NAME")
    index_name: str = Field("gsi1", alias="CHATS_INDEX_NAME")
    region: str = Field("us-east-1", alias="AWS_REGION")
    # Set when talking to LocalStack or DynamoDB Local instead of AWS.
    endpoint_url: Optional[str] = Field(default=None, alias="LOCALSTACK_ENDPOINT")

    @field_validator("table_name", "index_name", "region")
    def validate_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("DynamoDB table, index and region names must not be blank")
        return value

    @field_validator("endpoint_url")
    def validate_endpoint_url(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def is_local(self) -> bool:
        return self.endpoint_url is not None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


@lru_cache()
def get_dynamodb_config() -> DynamoDBConfig:
    """Return a cached DynamoDB configuration."""

    return DynamoDBConfig()
