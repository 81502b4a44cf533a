"""领域层模型与协议。

包含：
- models: 统一的 Turn / SamplingParams / ChatResult / ModelDescriptor 模型。
- conversation: 会话历史缓冲区 ConversationBuffer 与交换结果 Ok / Err。
- exceptions: 业务异常类型定义。
"""
