"""
Camera models and the numerics they share.

Models map normalized camera coordinates to pixels and provide closed-form
Jacobians w.r.t. the point and the intrinsic parameters.
"""
