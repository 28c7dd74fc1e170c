"""External system adapters: price sources and record stores."""
