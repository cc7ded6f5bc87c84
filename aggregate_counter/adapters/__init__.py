"""存储与传输适配器：Redis 持久化存储、Kafka 事件消费。"""
