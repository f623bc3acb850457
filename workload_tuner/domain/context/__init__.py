# This module handles memory, attention and the per-cycle context

# +---------------------+
# |      Memory         |   (Durable, owned by MemorySystem)
# |---------------------|
# | Semantic facts      |
# | Episodes            |
# | Causal chains       |
# +---------------------+

# +---------------------+
# |      State          |   (Per unit, across cycles)
# |---------------------|
# | Workload presence   |
# | Absent cycles       |
# +---------------------+

#    \    /
#     \  /
#      \/
# +------------------------------+
# |           Context            |   (Assembled once per cycle)
# |------------------------------|
# | System + activity snapshots  |
# | Attention focus scores       |
# | Workload metrics             |
# +------------------------------+
#         |
#         v
#   [unit reason() -> resolver]
