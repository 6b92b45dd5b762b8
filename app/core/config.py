"""
服务配置
从环境变量和 .env 读取，结算相关参数集中在此
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """运行环境枚举"""
    TESTING = "testing"
    PRODUCTION = "production"


class Settings(BaseSettings):

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    app_name: str = "Course Checkout Engine"
    app_version: str = "1.0.0"
    environment: Environment = Environment.TESTING
    debug: bool = False

    # 数据库，database_url 优先于分项配置
    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "course_checkout_db"
    db_user: str = "checkout_user"
    db_password: str = "checkout_password"
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_recycle: int = 3600

    # Redis，仅用于优惠券管理查询缓存
    redis_url: Optional[str] = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0
    redis_max_connections: int = 20
    coupon_cache_prefix: str = "checkout:"
    coupon_cache_ttl: int = 1800

    # 结算
    checkout_amount_tolerance: Decimal = Decimal("0.01")  # 客户端金额允许误差
    checkout_timeout_seconds: float = 30.0  # 单次结算事务超时，0为不限
    allow_test_payments: bool = True  # 生产环境应关闭模拟支付

    log_level: str = "INFO"

    @field_validator("checkout_amount_tolerance")
    @classmethod
    def validate_tolerance(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("金额误差不能为负数")
        return v

    @field_validator("checkout_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v < 0:
            raise ValueError("结算超时时间不能为负数")
        return v

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def database_url_computed(self) -> str:
        """计算数据库URL"""
        if self.database_url:
            return self.database_url
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def redis_url_computed(self) -> str:
        """计算Redis URL"""
        if self.redis_url:
            return self.redis_url
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"


# 全局配置实例
settings = Settings()
