"""ctxbuild - build orchestration for embedded solutions.

ctxbuild drives csolution, cpackget, cbuildgen and cmake/ninja to build the
contexts of a solution as one operation.
"""

__version__ = "0.1.0"
