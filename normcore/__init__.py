# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
normcore: layer normalization operator for inference engines.

The operator validates shapes under a flexible axis convention and routes
execution to one of several interchangeable backends:
  - reference (float64-accumulating fallback, always available)
  - graph_compiler (torch.fx graph of mvn → mul → add)
  - accelerator (single fused primitive)
  - gpu (fused kernel parameterized by axis, epsilon, loops)
  - parallel (three-pass matrix-vector reduction, float32 only)
"""

__version__ = "0.1.0"
